"""
LTE Code Block Segmentation - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteCodeBlockSegment

MATLAB Compatibility:
- Splits input into code blocks (max size 6144)
- Prepends -1 (NULL) filler bits to first block as needed
- Appends CRC24B when B > 6144
- Returns cell array (Python list) of int8 arrays

Based on 3GPP TS 36.212 Section 5.1.2
"""

import numpy as np
from typing import List, Dict

from crc_encode import LTE_CRC
from lte_errors import ConfigurationError


# Maximum code block size
Z = 6144

# Valid turbo interleaver block sizes from 3GPP TS 36.212 Table 5.1.3-3
K_TABLE = [
    40, 48, 56, 64, 72, 80, 88, 96, 104, 112, 120, 128, 136, 144, 152, 160, 168, 176, 184, 192,
    200, 208, 216, 224, 232, 240, 248, 256, 264, 272, 280, 288, 296, 304, 312, 320, 328, 336,
    344, 352, 360, 368, 376, 384, 392, 400, 408, 416, 424, 432, 440, 448, 456, 464, 472, 480,
    488, 496, 504, 512, 528, 544, 560, 576, 592, 608, 624, 640, 656, 672, 688, 704, 720, 736,
    752, 768, 784, 800, 816, 832, 848, 864, 880, 896, 912, 928, 944, 960, 976, 992, 1008, 1024,
    1056, 1088, 1120, 1152, 1184, 1216, 1248, 1280, 1312, 1344, 1376, 1408, 1440, 1472, 1504,
    1536, 1568, 1600, 1632, 1664, 1696, 1728, 1760, 1792, 1824, 1856, 1888, 1920, 1952, 1984,
    2016, 2048, 2112, 2176, 2240, 2304, 2368, 2432, 2496, 2560, 2624, 2688, 2752, 2816, 2880,
    2944, 3008, 3072, 3136, 3200, 3264, 3328, 3392, 3456, 3520, 3584, 3648, 3712, 3776, 3840,
    3904, 3968, 4032, 4096, 4160, 4224, 4288, 4352, 4416, 4480, 4544, 4608, 4672, 4736, 4800,
    4864, 4928, 4992, 5056, 5120, 5184, 5248, 5312, 5376, 5440, 5504, 5568, 5632, 5696, 5760,
    5824, 5888, 5952, 6016, 6080, 6144
]


def get_segmentation_params(blklen: int) -> Dict:
    """
    Calculate code block segmentation parameters (TS 36.212 Section 5.1.2)

    Parameters:
        blklen: Length B of the block to segment (transport block + CRC24A)

    Returns:
        Dictionary with segmentation parameters:
            B, C, L, B_prime, K_plus, K_minus, C_plus, C_minus, F and
            code_block_sizes (K_r for r = 0..C-1, K- blocks first)
    """
    B = int(blklen)
    if B < 0:
        raise ConfigurationError(f"Block length must be nonnegative, got {B}")

    if B <= Z:
        L = 0  # No CRC24B appended
        C = 1
        B_prime = B
    else:
        L = 24  # CRC24B appended to each block
        C = int(np.ceil(B / (Z - L)))
        B_prime = B + C * L

    # K+ is the smallest table size with C*K >= B'
    K_plus = next((k for k in K_TABLE if C * k >= B_prime), None)
    if K_plus is None:
        raise ConfigurationError(f"Block size {B} too large for segmentation")

    if C == 1:
        K_minus = 0
        C_plus = 1
        C_minus = 0
    else:
        # K- is the largest table size below K+
        K_minus = max(k for k in K_TABLE if k < K_plus)
        delta_K = K_plus - K_minus
        C_minus = (C * K_plus - B_prime) // delta_K
        C_plus = C - C_minus
        if C_minus == 0:
            K_minus = 0

    F = C_plus * K_plus + C_minus * K_minus - B_prime

    return {
        'B': B,
        'C': C,
        'L': L,
        'B_prime': B_prime,
        'K_plus': K_plus,
        'K_minus': K_minus,
        'C_plus': C_plus,
        'C_minus': C_minus,
        'F': F,
        'code_block_sizes': [K_minus if r < C_minus else K_plus for r in range(C)],
    }


class LTE_CodeBlockSegmentation:
    """
    LTE Code Block Segmentation
    MATLAB-COMPATIBLE - Matches lteCodeBlockSegment
    """

    def __init__(self):
        self.crc = LTE_CRC()
        self.gCRC24B, _ = self.crc.generator('24B')

    def segment(self, input_bits):
        """
        Code block segmentation following 3GPP TS 36.212 Section 5.1.2

        MATLAB lteCodeBlockSegment behavior:
        - If B <= 6144: Single block, no CRC24B, may have -1 filler bits
        - If B > 6144: Multiple blocks, each with CRC24B, -1 filler bits in first block

        Parameters:
            input_bits: Transport block bits (after CRC24A attachment)

        Returns:
            code_blocks: List of int8 code blocks (-1 marks filler bits)
            segmentation_info: Dictionary with segmentation parameters
        """
        input_bits = np.asarray(input_bits).astype(np.int8)
        info = get_segmentation_params(len(input_bits))
        L = info['L']
        F = info['F']

        code_blocks = []
        bit_index = 0

        for r, K_r in enumerate(info['code_block_sizes']):
            code_block = np.zeros(K_r, dtype=np.int8)

            # MATLAB: "The <NULL> filler bits (represented by -1 at the output)"
            data_start = F if r == 0 else 0
            code_block[:data_start] = -1

            data_length = K_r - L
            n_data = data_length - data_start
            code_block[data_start:data_length] = input_bits[bit_index:bit_index + n_data]
            bit_index += n_data

            # Attach CRC24B (only when B > 6144); filler bits count as 0
            if L > 0:
                code_block[data_length:] = self.crc.crc_calculate(
                    code_block[:data_length], self.gCRC24B, L)

            code_blocks.append(code_block)

        return code_blocks, info


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER
# ============================================================================

def lteCodeBlockSegment(blk) -> List[np.ndarray]:
    """
    MATLAB lteCodeBlockSegment equivalent

    Syntax:
        cbs = lteCodeBlockSegment(blk)

    Parameters:
        blk: Data bit vector (transport block with CRC24A)

    Returns:
        cbs: List of int8 code block segments, -1 for filler bits

    Examples:
        >>> len(lteCodeBlockSegment(np.ones(6144, dtype=int)))
        1
        >>> [len(cb) for cb in lteCodeBlockSegment(np.ones(6145, dtype=int))]
        [3072, 3136]
    """
    segmenter = LTE_CodeBlockSegmentation()
    code_blocks, _ = segmenter.segment(blk)
    return code_blocks


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    print("=" * 70)
    print("LTE Code Block Segmentation - MATLAB lteCodeBlockSegment Equivalent")
    print("=" * 70)
    print()

    for B in [6144, 6145, 11472]:
        cbs = lteCodeBlockSegment(np.ones(B, dtype=int))
        info = get_segmentation_params(B)
        print(f"B={B}: C={info['C']}, sizes={[len(cb) for cb in cbs]}, F={info['F']}")
