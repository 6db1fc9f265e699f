"""
LTE DL-SCH/PDSCH Error Taxonomy

ConfigurationError:
    Invalid or inconsistent cell/channel parameters, or stage inputs whose
    size does not fit the configured processing (e.g. 10 bits into a 16QAM
    modulator). Raised before or during a stage and aborts the invocation.

ConvergenceWarning:
    Turbo decoding finished its iteration budget without the two constituent
    decoders agreeing on the hard decisions. Issued with warnings.warn; the
    decoded bits are still returned.

CRC failures are not exceptions: they are reported as flags in the decode
results so the HARQ layer can decide about retransmission.
"""


class ConfigurationError(ValueError):
    """Invalid LTE cell/channel configuration or stage input size"""


class ConvergenceWarning(UserWarning):
    """Turbo decoder did not converge within the configured iterations"""
