"""Q-Chem EOM-CC interface for Newton-X nonadiabatic dynamics."""

__version__ = "0.1.0"
