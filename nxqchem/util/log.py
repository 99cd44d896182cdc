# nxqchem/util/log.py
from pathlib import Path


class StepLogger:
    """
    Print diagnostics tagged with the script name, Newton-X step and time.

        [run_step] step 12 t=6.00 fs | Reading Epot.

    lvprt >= 3 enables debug lines. Tables of extracted data are printed
    only on print steps (istep % kt == 0), like the rest of Newton-X output.
    """

    def __init__(self, tag, istep=0, t=0.0, kt=1, lvprt=1, log_file=None):
        self.tag = tag
        self.istep = istep
        self.t = t
        self.kt = kt
        self.lvprt = lvprt
        self.log_file = Path(log_file) if log_file else None

    @property
    def print_step(self):
        return self.kt <= 1 or self.istep % self.kt == 0

    def _emit(self, msg):
        line = f"[{self.tag}] step {self.istep} t={self.t:.2f} fs | {msg}"
        print(line, flush=True)
        if self.log_file is not None:
            with open(self.log_file, "a") as f:
                f.write(line + "\n")

    def info(self, msg):
        self._emit(msg)

    def debug(self, msg):
        if self.lvprt >= 3:
            self._emit(msg)

    def warning(self, msg):
        self._emit(f"WARNING: {msg}")

    def table(self, title, rows):
        if not self.print_step:
            return
        self._emit(title)
        for row in rows:
            self._emit(row)
