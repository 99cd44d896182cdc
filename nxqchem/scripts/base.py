import subprocess

from nxqchem.config.config_loader import QchemEnvConfig
from nxqchem.util.errors import ExternalProcessError


class Script:
    """
    Base class for all scripts used by CLI.

    Subclasses must define:
        name   : CLI subcommand name
        config : a ConfigBase subclass(If the script doesn't require config, config=None)
        run(self, cfg)
    """

    name = None
    config = None

    def run(self, cfg):
        raise NotImplementedError


class QchemBaseScript(Script):
    name = "Qchem"
    config = None

    def run(self, cfg):
        raise NotImplementedError

    @staticmethod
    def qchem_command(inp_file, out_file, nthreads, env_script=""):
        return f"""
{env_script}
export OMP_NUM_THREADS={nthreads}
qchem -nt {nthreads} {inp_file} {out_file} > qchem.status
"""

    def run_qchem(self, inp_file, out_file, nthreads, cwd=".", env_script=None):
        """Run Q-Chem and wait for it. A nonzero exit status is fatal."""
        if env_script is None:
            env_script = QchemEnvConfig().env_script.strip()

        cmd = self.qchem_command(inp_file, out_file, nthreads, env_script)
        ret = subprocess.run(cmd, shell=True, executable="/bin/bash", cwd=cwd).returncode
        if ret != 0:
            raise ExternalProcessError(
                f"qchem -nt {nthreads} {inp_file} {out_file}", ret, "Error in the Q-Chem execution"
            )
        return ret
