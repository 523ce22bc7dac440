from .local_probe import ProbeError, probe_duration

__all__ = ["ProbeError", "probe_duration"]
