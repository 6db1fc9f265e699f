"""
LTE Rate Recovery for Turbo Coded Data - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteRateRecoverTurbo

MATLAB Compatibility:
- Inverse of rate matching operation for turbo encoded data
- Recovers turbo encoded code blocks before concatenation
- Inverse of: sub-block interleaving, bit collection, bit selection
- Deduces dimensions from transport block length
- Supports redundancy versions (RV): 0, 1, 2, 3
- Supports HARQ soft combining with pre-existing code block buffers

Received soft values are scattered back to their coded block positions;
values selected more than once (repetition) are added. Positions that were
not transmitted stay at 0 (no information), filler positions are set to a
strong bit-0 value because the decoder knows them.

Based on 3GPP TS 36.212 Section 5.1.4.1 (inverse operations)
"""

import logging
import numpy as np
from typing import List, Optional, Union

from code_block_segment import get_segmentation_params
from lte_errors import ConfigurationError
from rate_match_turbo import (LTE_RateMatching, C_SUBBLOCK, codeblock_output_lengths,
                              soft_buffer_size)
from turbo_decode import LLR_LIMIT

logger = logging.getLogger(__name__)


# ============================================================================
# HARQ SOFT BUFFER
# ============================================================================

class SoftBuffer:
    """
    Per-codeword HARQ soft buffer

    Holds the combined soft code blocks of one HARQ process. Owned by the
    caller across retransmissions and updated in place by rate recovery.
    It must not be shared between concurrently decoded codewords.

    Examples:
        >>> buf = SoftBuffer()
        >>> buf.is_empty
        True
    """

    def __init__(self, cbsbuffers: Optional[List[np.ndarray]] = None):
        self.cbsbuffers = [np.asarray(b, dtype=np.float64) for b in (cbsbuffers or [])]

    @property
    def is_empty(self) -> bool:
        return len(self.cbsbuffers) == 0

    def reset(self):
        """Flush the buffer, e.g. when a new transport block starts"""
        self.cbsbuffers = []

    def __len__(self):
        return len(self.cbsbuffers)

    def __getitem__(self, r):
        return self.cbsbuffers[r]


# ============================================================================
# INVERSE RATE MATCHING
# ============================================================================

class LTE_RateRecovery:
    """
    LTE Rate Recovery for Turbo Coded Data
    MATLAB-COMPATIBLE - Matches lteRateRecoverTurbo

    Uses the rate matching index mapping in reverse.
    """

    def __init__(self):
        self.rate_matcher = LTE_RateMatching()

    def rate_recover_code_block(self, e_bits: np.ndarray, K: int, F: int, rv: int,
                                N_cb: Optional[int] = None,
                                cbsbuffer: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Rate recover single code block

        Parameters:
            e_bits: Rate-matched soft values for this code block
            K: Code block size (before turbo encoding)
            F: Number of filler bits in this code block
            rv: Redundancy version
            N_cb: Soft buffer size (default: K_w)
            cbsbuffer: Optional pre-existing soft block (length 3*(K+4))

        Returns:
            Recovered turbo encoded block in [S P1 P2] format (3*(K+4) values)
        """
        D = K + 4
        null_mask = self.rate_matcher.filler_mask(D, F)
        idx = self.rate_matcher.bit_selection(D, len(e_bits), rv, N_cb, null_mask)

        output = np.zeros(3 * D, dtype=np.float64)
        np.add.at(output, idx, e_bits)

        if cbsbuffer is not None and len(cbsbuffer) > 0:
            if len(cbsbuffer) != 3 * D:
                raise ConfigurationError(
                    f"Soft buffer length {len(cbsbuffer)} does not match code block length {3 * D}")
            output += cbsbuffer

        output[null_mask] = LLR_LIMIT
        return output


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTION
# ============================================================================

def lteRateRecoverTurbo(in_data, trblklen: int, rv: int, chs=None,
                        cbsbuffers: Optional[Union[SoftBuffer, List[np.ndarray]]] = None
                        ) -> List[np.ndarray]:
    """
    MATLAB lteRateRecoverTurbo equivalent - Turbo rate recovery

    Performs rate recovery of input vector, creating cell array of vectors
    representing turbo encoded code blocks before concatenation.

    Syntax:
        out = lteRateRecoverTurbo(in, trblklen, rv)
        out = lteRateRecoverTurbo(in, trblklen, rv, chs, cbsbuffers)

    Parameters:
        in_data: Input rate-matched soft values (positive = bit 0)
        trblklen: Length of original transport block BEFORE CRC and encoding
        rv: Redundancy version (0, 1, 2, or 3)
        chs: Optional per-codeword configuration (lte_config.CodewordConfig)
             for the downlink E_r granularity and soft buffer limitation
        cbsbuffers: Optional pre-existing code block buffers for HARQ combining.
                    A SoftBuffer is updated in place with the combined result;
                    a list of arrays is only read. An empty buffer, or one
                    with mismatched dimensions, is ignored.

    Returns:
        Cell array (list) of float64 soft code blocks, each 3*(K+4) long

    MATLAB Documentation:
        "This function is the inverse of the rate matching operation for turbo
        encoded data. It includes the inverses of the subblock interleaving,
        bit collection, and bit selection and pruning stages. The dimensions
        of out are deduced from trblklen, which represents the length of the
        original encoded transport block."

    Examples:
        >>> from crc_encode import lteCRCEncode
        >>> from code_block_segment import lteCodeBlockSegment
        >>> from rate_match_turbo import lteRateMatchTurbo
        >>> from turbo_encode import lteTurboEncode
        >>> trblockwithcrc = lteCRCEncode(np.zeros(135, dtype=int), '24A')
        >>> codeword = lteRateMatchTurbo(
        ...     lteTurboEncode(lteCodeBlockSegment(trblockwithcrc)), 450, 0)
        >>> [len(b) for b in lteRateRecoverTurbo(1.0 - 2.0 * codeword, 135, 0)]
        [492]
    """
    if rv not in (0, 1, 2, 3):
        raise ConfigurationError(f"RV must be 0, 1, 2, or 3, got {rv}")

    in_array = np.asarray(in_data, dtype=np.float64)

    params = get_segmentation_params(trblklen + 24)
    C = params['C']
    F = params['F']
    sizes = params['code_block_sizes']
    lengths = [3 * (K + 4) for K in sizes]

    E_r = codeblock_output_lengths(len(in_array), C, chs)

    if isinstance(cbsbuffers, SoftBuffer):
        soft_buffer = cbsbuffers
        previous = None if soft_buffer.is_empty else soft_buffer.cbsbuffers
    else:
        soft_buffer = None
        previous = cbsbuffers if cbsbuffers else None

    if previous is not None and [len(b) for b in previous] != lengths:
        logger.warning("Soft buffer dimensions %s do not match code blocks %s, not combining",
                       [len(b) for b in previous], lengths)
        previous = None

    rate_recovery = LTE_RateRecovery()
    recovered_blocks = []
    offset = 0

    for r, (K, E) in enumerate(zip(sizes, E_r)):
        e_bits = in_array[offset:offset + E]
        offset += E

        K_w = 3 * C_SUBBLOCK * -(-(K + 4) // C_SUBBLOCK)
        N_cb = soft_buffer_size(C, K_w, chs)
        cbsbuffer = previous[r] if previous is not None else None

        recovered_blocks.append(rate_recovery.rate_recover_code_block(
            e_bits, K, F if r == 0 else 0, rv, N_cb, cbsbuffer))

    if soft_buffer is not None:
        soft_buffer.cbsbuffers = [b.copy() for b in recovered_blocks]

    logger.debug("Rate recovered %d soft bits into %d code block(s), RV=%d, combined=%s",
                 len(in_array), C, rv, previous is not None)
    return recovered_blocks


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from crc_encode import lteCRCEncode
    from code_block_segment import lteCodeBlockSegment
    from turbo_encode import lteTurboEncode
    from rate_match_turbo import lteRateMatchTurbo

    print("=" * 70)
    print("LTE Rate Recover Turbo - MATLAB lteRateRecoverTurbo Equivalent")
    print("=" * 70)
    print()

    trBlkLen = 135
    codewordLen = 450
    rng = np.random.default_rng(1)

    trblockwithcrc = lteCRCEncode(rng.integers(0, 2, trBlkLen), '24A')
    turbocoded = lteTurboEncode(lteCodeBlockSegment(trblockwithcrc))

    buffer = SoftBuffer()
    for rv in [0, 2, 3, 1]:
        codeword = lteRateMatchTurbo(turbocoded, codewordLen, rv)
        recovered = lteRateRecoverTurbo(1.0 - 2.0 * codeword, trBlkLen, rv, cbsbuffers=buffer)
        known = int(np.count_nonzero(recovered[0]))
        print(f"RV={rv}: {known} / {len(recovered[0])} soft positions known after combining")
