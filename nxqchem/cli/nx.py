from nxqchem.cli.base import CLICommand


class Nx(CLICommand):
    """Newton-X timestep commands (run_step, parse_output)."""
    name = "nx"
