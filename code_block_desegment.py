"""
LTE Code Block Desegmentation - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteCodeBlockDesegment

MATLAB Compatibility:
- Concatenates code block segments into single output block
- Performs CRC-24B checking and removal (if C > 1)
- Removes filler bits from beginning of first code block
- Returns per-block CRC error indicators

Based on 3GPP TS 36.212 Section 5.1.2
"""

import numpy as np
from typing import Union, List, Tuple, Optional

from code_block_segment import get_segmentation_params
from crc_encode import LTE_CRC
from lte_errors import ConfigurationError


def lteCodeBlockDesegment(cbs: Union[np.ndarray, List[np.ndarray]],
                          blklen: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    MATLAB lteCodeBlockDesegment equivalent - Code block desegmentation

    Performs inverse of code block segmentation by concatenating code blocks,
    checking and removing CRCs (if multiple blocks), and removing filler bits.

    Syntax:
        blk, err = lteCodeBlockDesegment(cbs)
        blk, err = lteCodeBlockDesegment(cbs, blklen)

    Parameters:
        cbs: Code block segments
             - Single vector: no CRC checking
             - List with 1 element: no CRC checking
             - List with >1 elements: each has 24B CRC to check/remove
        blklen: Original block length B (transport block + CRC24A)
                If provided, used to calculate filler bits to remove and to
                validate the code block sizes
                If not provided, no filler removal

    Returns:
        blk: Desegmented output block (int8), filler bits and CRCs removed
        err: CRC error indicators (int8)
             - If C > 1: length C, 0=pass, 1=fail for each block
             - If C = 1: empty array

    Examples:
        cbs = lteCodeBlockSegment(np.ones(6145))
        blk, err = lteCodeBlockDesegment(cbs, 6145)
    """
    if isinstance(cbs, np.ndarray):
        code_blocks = [cbs]
    else:
        code_blocks = list(cbs)

    C = len(code_blocks)
    if C == 0:
        raise ConfigurationError("At least one code block is required")

    if blklen is not None and blklen > 0:
        params = get_segmentation_params(blklen)
        if C != params['C']:
            raise ConfigurationError(f"Expected {params['C']} code blocks but got {C}")
        F = params['F']
        L = params['L']
        expected_sizes = params['code_block_sizes']
    else:
        F = 0
        L = 24 if C > 1 else 0
        expected_sizes = [len(cb) for cb in code_blocks]

    crc = LTE_CRC()
    output_bits = []
    crc_errors = []

    for r, (cb, K_r) in enumerate(zip(code_blocks, expected_sizes)):
        cb = np.asarray(cb).astype(np.int8)
        if len(cb) != K_r:
            raise ConfigurationError(f"Code block {r} has length {len(cb)}, expected {K_r}")

        # Filler bits were prepended to the first block only
        start_idx = F if r == 0 else 0

        if L > 0:
            # CRC24B covers the filler bits as zeros, which leaves it unchanged
            data, ok = crc.crc_check(np.where(cb < 0, 0, cb), '24B')
            crc_errors.append(0 if ok else 1)
            output_bits.append(data[start_idx:])
        else:
            output_bits.append(cb[start_idx:])

    blk = np.concatenate(output_bits).astype(np.int8)
    err = np.array(crc_errors, dtype=np.int8)

    return blk, err


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from code_block_segment import lteCodeBlockSegment

    print("=" * 70)
    print("LTE Code Block Desegmentation - MATLAB Compatible")
    print("=" * 70)
    print()

    for B in [100, 6145, 20000]:
        test_data = np.random.default_rng(B).integers(0, 2, B).astype(np.int8)
        cbs = lteCodeBlockSegment(test_data)
        blk, err = lteCodeBlockDesegment(cbs, B)
        status = "PASS" if np.array_equal(blk, test_data) else "FAIL"
        print(f"B={B}: {len(cbs)} block(s), CRC errors {err.tolist()} -> {status}")
