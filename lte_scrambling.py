"""
LTE PDSCH Scrambling - MATLAB-Compatible Implementation
Python equivalent of MATLAB ltePDSCHPRBS / lteScramble / lteDescramble

MATLAB Compatibility:
- Length-31 Gold sequence pseudo-random generator (TS 36.211 Section 7.2)
- PDSCH initialization:
  c_init = RNTI * 2^14 + q * 2^13 + floor(ns/2) * 2^9 + NCellID
  with floor(ns/2) equal to the subframe number
- Binary output for bit scrambling, signed (+1/-1) output for soft descrambling
- Scrambling is XOR, descrambling of LLRs (positive = bit 0) multiplies
  by the signed sequence

Based on 3GPP TS 36.211 Sections 6.3.1 and 7.2
"""

import numpy as np
from numba import jit

from lte_errors import ConfigurationError


# Number of idle clocks before the first output bit (TS 36.211 Section 7.2)
NC = 1600


@jit(nopython=True, nogil=True)
def _gold_sequence_numba(c_init: int, length: int) -> np.ndarray:
    """
    Length-31 Gold sequence c(n), n = 0..length-1

    x1(n+31) = (x1(n+3) + x1(n)) mod 2,               x1(0) = 1, x1(1..30) = 0
    x2(n+31) = (x2(n+3) + x2(n+2) + x2(n+1) + x2(n)) mod 2,  x2 from c_init
    c(n)     = (x1(n+Nc) + x2(n+Nc)) mod 2
    """
    total = length + NC + 31
    x1 = np.zeros(total, dtype=np.int8)
    x2 = np.zeros(total, dtype=np.int8)
    x1[0] = 1
    for i in range(31):
        x2[i] = (c_init >> i) & 1

    for n in range(length + NC):
        x1[n + 31] = x1[n + 3] ^ x1[n]
        x2[n + 31] = x2[n + 3] ^ x2[n + 2] ^ x2[n + 1] ^ x2[n]

    c = np.zeros(length, dtype=np.int8)
    for n in range(length):
        c[n] = x1[n + NC] ^ x2[n + NC]
    return c


def gold_sequence(c_init: int, length: int, mapping: str = 'binary') -> np.ndarray:
    """
    Pseudo-random sequence of the given length from a 31-bit initialization

    Parameters:
        c_init: Initialization value (0 <= c_init < 2^31)
        length: Number of output values
        mapping: 'binary' for 0/1 (int8) or 'signed' for +1/-1 (float64),
                 where bit 0 maps to +1 and bit 1 to -1

    Examples:
        >>> gold_sequence(16384, 100).shape
        (100,)
    """
    c_init = int(c_init)
    length = int(length)
    if not 0 <= c_init < 2 ** 31:
        raise ConfigurationError(f"c_init must be within 0..2^31-1, got {c_init}")
    if length < 0:
        raise ConfigurationError(f"Sequence length must be nonnegative, got {length}")

    c = _gold_sequence_numba(c_init, length)
    if mapping == 'binary':
        return c
    if mapping == 'signed':
        return 1.0 - 2.0 * c
    raise ConfigurationError(f"Mapping must be 'binary' or 'signed', got '{mapping}'")


def pdsch_scrambling_init(NCellID: int, NSubframe: int, RNTI: int, q: int) -> int:
    """
    PDSCH scrambling initialization for codeword q (TS 36.211 Section 6.3.1)

    Examples:
        >>> pdsch_scrambling_init(0, 0, 1, 0)
        16384
    """
    if q not in (0, 1):
        raise ConfigurationError(f"Codeword index must be 0 or 1, got {q}")
    return RNTI * 2 ** 14 + q * 2 ** 13 + NSubframe * 2 ** 9 + NCellID


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTIONS
# ============================================================================

def ltePDSCHPRBS(enb, rnti: int, ncw: int, n: int, mapping: str = 'binary') -> np.ndarray:
    """
    MATLAB ltePDSCHPRBS equivalent - PDSCH pseudo-random scrambling sequence

    Syntax:
        seq = ltePDSCHPRBS(enb, rnti, ncw, n)
        seq = ltePDSCHPRBS(enb, rnti, ncw, n, mapping)

    Parameters:
        enb: Cell-wide settings (lte_config.CellConfig), uses NCellID and NSubframe
        rnti: Radio network temporary identifier
        ncw: Codeword index (0 or 1)
        n: Sequence length
        mapping: 'binary' (default) or 'signed'

    Returns:
        Scrambling sequence, regenerated on every call from the same seed
    """
    c_init = pdsch_scrambling_init(enb.NCellID, enb.NSubframe, rnti, ncw)
    return gold_sequence(c_init, n, mapping)


def lteScramble(bits, seq) -> np.ndarray:
    """
    Scramble hard bits: b XOR c

    Examples:
        >>> lteScramble(np.array([0, 1, 1]), np.array([1, 1, 0])).tolist()
        [1, 0, 1]
    """
    bits = np.asarray(bits).astype(np.int8)
    seq = np.asarray(seq).astype(np.int8)
    if len(bits) != len(seq):
        raise ConfigurationError(
            f"Scrambling sequence length {len(seq)} does not match input length {len(bits)}")
    return bits ^ seq


def lteDescramble(softbits, seq, mapping: str = 'binary') -> np.ndarray:
    """
    Descramble soft bits (LLRs, positive = bit 0)

    With a binary sequence a scrambling bit of 1 flips the sign of the
    corresponding LLR. A signed (+1/-1) sequence, as returned by
    ltePDSCHPRBS(..., 'signed'), multiplies the LLRs directly.
    """
    softbits = np.asarray(softbits, dtype=np.float64)
    seq = np.asarray(seq, dtype=np.float64)
    if len(softbits) != len(seq):
        raise ConfigurationError(
            f"Scrambling sequence length {len(seq)} does not match input length {len(softbits)}")
    if mapping == 'binary':
        return softbits * (1.0 - 2.0 * seq)
    if mapping == 'signed':
        return softbits * seq
    raise ConfigurationError(f"Mapping must be 'binary' or 'signed', got '{mapping}'")


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import CellConfig

    print("=" * 70)
    print("LTE PDSCH Scrambling - MATLAB ltePDSCHPRBS Equivalent")
    print("=" * 70)
    print()

    enb = CellConfig(NCellID=10, NSubframe=3)
    for cw in (0, 1):
        seq = ltePDSCHPRBS(enb, 61, cw, 16)
        print(f"Codeword {cw}: c_init={pdsch_scrambling_init(10, 3, 61, cw)}, seq={seq.tolist()}")

    bits = np.random.default_rng(0).integers(0, 2, 16).astype(np.int8)
    seq = ltePDSCHPRBS(enb, 61, 0, 16)
    print(f"XOR twice is identity: {np.array_equal(lteScramble(lteScramble(bits, seq), seq), bits)}")
