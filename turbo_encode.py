"""
LTE Turbo Encoding - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteTurboEncode

MATLAB Compatibility:
- PCCC (Parallel Concatenated Convolutional Code) with two 8-state RSC encoders
- QPP (Quadratic Permutation Polynomial) interleaver
- Coding rate: 1/3
- Output format: [S P1 P2] concatenated block-wise, each K+4 long
- Filler bits (-1) treated as logical 0 for encoding
- Filler bits passed through to S and P1 output positions

Based on 3GPP TS 36.212 Section 5.1.3
"""

import numpy as np
from numba import jit
from typing import List, Tuple, Union

from lte_errors import ConfigurationError


# QPP interleaver parameters from TS 36.212 Table 5.1.3-3
# Format: K: (f1, f2)
QPP_PARAMS = {
    40: (3, 10), 48: (7, 12), 56: (19, 42), 64: (7, 16), 72: (7, 18), 80: (11, 20),
    88: (5, 22), 96: (11, 24), 104: (7, 26), 112: (41, 84), 120: (103, 90), 128: (15, 32),
    136: (9, 34), 144: (17, 108), 152: (9, 38), 160: (21, 120), 168: (101, 84), 176: (21, 44),
    184: (57, 46), 192: (23, 48), 200: (13, 50), 208: (27, 52), 216: (11, 36), 224: (27, 56),
    232: (85, 58), 240: (29, 60), 248: (33, 62), 256: (15, 32), 264: (17, 198), 272: (33, 68),
    280: (103, 210), 288: (19, 36), 296: (19, 74), 304: (37, 76), 312: (19, 78), 320: (21, 120),
    328: (21, 82), 336: (115, 84), 344: (193, 86), 352: (21, 44), 360: (133, 90), 368: (81, 46),
    376: (45, 94), 384: (23, 48), 392: (243, 98), 400: (151, 40), 408: (155, 102), 416: (25, 52),
    424: (51, 106), 432: (47, 72), 440: (91, 110), 448: (29, 168), 456: (29, 114), 464: (247, 58),
    472: (29, 118), 480: (89, 180), 488: (91, 122), 496: (157, 62), 504: (55, 84), 512: (31, 64),
    528: (17, 66), 544: (35, 68), 560: (227, 420), 576: (65, 96), 592: (19, 74), 608: (37, 76),
    624: (41, 234), 640: (39, 80), 656: (185, 82), 672: (43, 252), 688: (21, 86), 704: (155, 44),
    720: (79, 120), 736: (139, 92), 752: (23, 94), 768: (217, 48), 784: (25, 98), 800: (17, 80),
    816: (127, 102), 832: (25, 52), 848: (239, 106), 864: (17, 48), 880: (137, 110), 896: (215, 112),
    912: (29, 114), 928: (15, 58), 944: (147, 118), 960: (29, 60), 976: (59, 122), 992: (65, 124),
    1008: (55, 84), 1024: (31, 64), 1056: (17, 66), 1088: (171, 204), 1120: (67, 140), 1152: (35, 72),
    1184: (19, 74), 1216: (39, 76), 1248: (19, 78), 1280: (199, 240), 1312: (21, 82), 1344: (211, 252),
    1376: (21, 86), 1408: (43, 88), 1440: (149, 60), 1472: (45, 92), 1504: (49, 846), 1536: (71, 48),
    1568: (13, 28), 1600: (17, 80), 1632: (25, 102), 1664: (183, 104), 1696: (55, 954), 1728: (127, 96),
    1760: (27, 110), 1792: (29, 112), 1824: (29, 114), 1856: (57, 116), 1888: (45, 354), 1920: (31, 120),
    1952: (59, 610), 1984: (185, 124), 2016: (113, 420), 2048: (31, 64), 2112: (17, 66), 2176: (171, 136),
    2240: (209, 420), 2304: (253, 216), 2368: (367, 444), 2432: (265, 456), 2496: (181, 468), 2560: (39, 80),
    2624: (27, 164), 2688: (127, 504), 2752: (143, 172), 2816: (43, 88), 2880: (29, 300), 2944: (45, 92),
    3008: (157, 188), 3072: (47, 96), 3136: (13, 28), 3200: (111, 240), 3264: (443, 204), 3328: (51, 104),
    3392: (51, 212), 3456: (451, 192), 3520: (257, 220), 3584: (57, 336), 3648: (313, 228), 3712: (271, 232),
    3776: (179, 236), 3840: (331, 120), 3904: (363, 244), 3968: (375, 248), 4032: (127, 168), 4096: (31, 64),
    4160: (33, 130), 4224: (43, 264), 4288: (33, 134), 4352: (477, 408), 4416: (35, 138), 4480: (233, 280),
    4544: (357, 142), 4608: (337, 480), 4672: (37, 146), 4736: (71, 444), 4800: (71, 120), 4864: (37, 152),
    4928: (39, 462), 4992: (127, 234), 5056: (39, 158), 5120: (39, 80), 5184: (31, 96), 5248: (113, 902),
    5312: (41, 166), 5376: (251, 336), 5440: (43, 170), 5504: (21, 86), 5568: (43, 174), 5632: (45, 176),
    5696: (45, 178), 5760: (161, 120), 5824: (89, 182), 5888: (323, 184), 5952: (47, 186), 6016: (23, 94),
    6080: (47, 190), 6144: (263, 480)
}


def rsc_trellis() -> Tuple[np.ndarray, np.ndarray]:
    """
    Trellis of the constituent RSC encoder, G(D) = [1, g1(D)/g0(D)]
    with g0(D) = 1 + D^2 + D^3 and g1(D) = 1 + D + D^3

    State bits are (s3, s2, s1) with s1 the most recent register content.

    Returns:
        (next_states, parity) arrays indexed [state, input bit]
    """
    next_states = np.zeros((8, 2), dtype=np.int32)
    parity = np.zeros((8, 2), dtype=np.int32)
    for state in range(8):
        s1 = state & 1
        s2 = (state >> 1) & 1
        s3 = (state >> 2) & 1
        for u in range(2):
            r = u ^ s2 ^ s3  # feedback
            next_states[state, u] = (s2 << 2) | (s1 << 1) | r
            parity[state, u] = r ^ s1 ^ s3
    return next_states, parity


NEXT_STATES, PARITY_BITS = rsc_trellis()


def qpp_permutation(K: int) -> np.ndarray:
    """
    QPP interleaver permutation Π(i) = (f1*i + f2*i^2) mod K

    The interleaved sequence is c'[i] = c[Π(i)], i.e. c[perm].
    """
    if K not in QPP_PARAMS:
        raise ConfigurationError(f"Interleaver params for K={K} not found in Table 5.1.3-3")
    f1, f2 = QPP_PARAMS[K]
    i = np.arange(K, dtype=np.int64)
    return (f1 * i + f2 * i * i) % K


@jit(nopython=True)
def _rsc_encode_numba(u: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Run one RSC encoder over u (negative values encode as 0) and terminate

    Returns:
        parity: K+3 parity bits (last 3 are tail parity)
        sys_tail: 3 systematic tail bits
    """
    K = len(u)
    parity = np.zeros(K + 3, dtype=np.int8)
    sys_tail = np.zeros(3, dtype=np.int8)
    state = 0

    for k in range(K):
        bit = 1 if u[k] > 0 else 0
        parity[k] = PARITY_BITS[state, bit]
        state = NEXT_STATES[state, bit]

    # Tail input equals the feedback so the register is flushed to zero
    for t in range(3):
        bit = ((state >> 1) & 1) ^ ((state >> 2) & 1)
        sys_tail[t] = bit
        parity[K + t] = PARITY_BITS[state, bit]
        state = NEXT_STATES[state, bit]

    return parity, sys_tail


# ============================================================================
# TURBO ENCODER
# ============================================================================

class LTE_TurboEncoder:
    """
    LTE Turbo Encoder with QPP Interleaver
    MATLAB-COMPATIBLE - Matches lteTurboEncode

    Based on 3GPP TS 36.212 Section 5.1.3
    """

    def turbo_encode(self, message) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Main turbo encoder (PCCC)

        Encoder architecture:
        - Two 8-state RSC constituent encoders
        - QPP interleaver between encoders
        - Trellis termination (3 tail bits per encoder)
        - Output: [d0, d1, d2] streams (systematic, parity1, parity2)

        Filler bit handling (MATLAB documentation):
        "To support the correct processing of filler bits, negative input bit
        values are specially processed. They are treated as logical 0 at the
        input to both encoders but their negative values are passed directly
        through to the associated output positions in sub-blocks S and P1."

        The 12 tail bits are multiplexed over the streams as in TS 36.212
        Section 5.1.3.2.2:
            d0: x_K,   z_K+1, x'_K,   z'_K+1
            d1: z_K,   x_K+2, z'_K,   x'_K+2
            d2: x_K+1, z_K+2, x'_K+1, z'_K+2

        Parameters:
            message: Input bit sequence (may contain -1 for filler bits)

        Returns:
            (d0, d1, d2) int8 streams, each of length K+4
        """
        c = np.asarray(message).astype(np.int8)
        K = len(c)
        perm = qpp_permutation(K)

        z1, x1_tail = _rsc_encode_numba(c)
        z2, x2_tail = _rsc_encode_numba(c[perm])

        filler = c < 0

        d0 = np.empty(K + 4, dtype=np.int8)
        d1 = np.empty(K + 4, dtype=np.int8)
        d2 = np.empty(K + 4, dtype=np.int8)

        d0[:K] = c
        d1[:K] = np.where(filler, -1, z1[:K])
        d2[:K] = z2[:K]

        d0[K:] = [x1_tail[0], z1[K + 1], x2_tail[0], z2[K + 1]]
        d1[K:] = [z1[K], x1_tail[2], z2[K], x2_tail[2]]
        d2[K:] = [x1_tail[1], z1[K + 2], x2_tail[1], z2[K + 2]]

        return d0, d1, d2


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTION
# ============================================================================

def lteTurboEncode(blk: Union[np.ndarray, List[np.ndarray]]) -> Union[np.ndarray, List[np.ndarray]]:
    """
    MATLAB lteTurboEncode equivalent - Turbo encoding

    Syntax:
        out = lteTurboEncode(in)

    Parameters:
        blk: Input data vector or cell array (Python list) of vectors
             Only legal turbo interleaver block sizes are supported (40-6144)
             Filler bits supported through negative input values (-1)

    Returns:
        out: Turbo encoded bits as int8 vector or cell array of int8 vectors
             Output format: [S P1 P2], each sub-block K+4 bits
             Total output length: 3*(K+4) bits

    Examples:
        >>> lteTurboEncode(np.ones(40, dtype=int)).shape
        (132,)
        >>> [len(cb) for cb in lteTurboEncode([np.ones(40), np.ones(6144)])]
        [132, 18444]
    """
    encoder = LTE_TurboEncoder()

    if isinstance(blk, list):
        return [np.concatenate(encoder.turbo_encode(vec)) for vec in blk]

    return np.concatenate(encoder.turbo_encode(blk))


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    print("=" * 70)
    print("LTE Turbo Encode - MATLAB lteTurboEncode Equivalent")
    print("=" * 70)
    print()

    out1 = lteTurboEncode(np.ones(40, dtype=int))
    print(f"Input: 40 bits -> Output: {len(out1)} bits (3*44 = 132), {out1.dtype}")

    out2 = lteTurboEncode([np.ones(40, dtype=int), np.ones(6144, dtype=int)])
    print(f"Input: [40, 6144] -> Output: [{len(out2[0])}, {len(out2[1])}]")

    out3 = lteTurboEncode(np.array([-1, -1, -1] + [1] * 37, dtype=int))
    print(f"First 3 bits of S: {out3[:3]}, of P1: {out3[44:47]}")
