"""
LTE Turbo Decoding - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteTurboDecode

MATLAB Compatibility:
- Parallel Concatenated Convolutional Code (PCCC) decoder
- Max-Log-MAP algorithm for constituent RSC decoders
- Input format: [S P1 P2] block-wise concatenation, each K+4 long
- Configurable iteration cycles (default: 5, range: 1-30)
- Supports single vector or cell array input
- Returns int8 decoded bits

Soft values are LLRs with positive meaning bit 0. Infinite values are
clipped to +/-LLR_LIMIT so a noiseless input decodes exactly.

Based on 3GPP TS 36.212 Section 5.1.3.2
Implementation uses Max-Log-MAP SISO algorithm with Numba optimization
"""

import numpy as np
from numba import jit
from typing import Union, List, Tuple

from lte_errors import ConfigurationError
from turbo_encode import NEXT_STATES, PARITY_BITS, qpp_permutation


LLR_LIMIT = 1e4


# ============================================================================
# MAX-LOG-MAP SISO DECODER (NUMBA OPTIMIZED)
# ============================================================================

@jit(nopython=True, nogil=True)
def _siso_decode_maxlog_numba(sys_llr: np.ndarray, par_llr: np.ndarray,
                              apr_llr: np.ndarray, K: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Max-Log-MAP SISO decoder for RSC constituent code

    Implements the BCJR algorithm using max approximation (Max-Log-MAP).
    Forward (alpha) and backward (beta) metrics are normalized per step.

    Parameters:
        sys_llr: Systematic LLRs (length K+3, last 3 are the tail)
        par_llr: Parity LLRs (length K+3, last 3 are the tail)
        apr_llr: A priori LLRs for the K information bits
        K: Information block size (without tail bits)

    Returns:
        (extrinsic LLRs, a posteriori LLRs), both length K
    """
    N = K + 3

    gamma = np.zeros((N, 8, 2), dtype=np.float64)
    for t in range(N):
        apr_t = apr_llr[t] if t < K else 0.0
        for s in range(8):
            for u in range(2):
                su = 1.0 - 2.0 * u
                sp = 1.0 - 2.0 * PARITY_BITS[s, u]
                gamma[t, s, u] = 0.5 * (sys_llr[t] * su + par_llr[t] * sp + apr_t * su)

    alpha = np.full((N + 1, 8), -np.inf)
    alpha[0, 0] = 0.0
    for t in range(N):
        for s in range(8):
            if alpha[t, s] == -np.inf:
                continue
            for u in range(2):
                ns = NEXT_STATES[s, u]
                metric = alpha[t, s] + gamma[t, s, u]
                if metric > alpha[t + 1, ns]:
                    alpha[t + 1, ns] = metric
        alpha[t + 1] -= np.max(alpha[t + 1])

    # Trellis is terminated in state 0
    beta = np.full((N + 1, 8), -np.inf)
    beta[N, 0] = 0.0
    for t in range(N - 1, -1, -1):
        for s in range(8):
            for u in range(2):
                ns = NEXT_STATES[s, u]
                metric = beta[t + 1, ns] + gamma[t, s, u]
                if metric > beta[t, s]:
                    beta[t, s] = metric
        beta[t] -= np.max(beta[t])

    post = np.zeros(K, dtype=np.float64)
    ext = np.zeros(K, dtype=np.float64)
    for t in range(K):
        max_0 = -np.inf
        max_1 = -np.inf
        for s in range(8):
            m0 = alpha[t, s] + gamma[t, s, 0] + beta[t + 1, NEXT_STATES[s, 0]]
            m1 = alpha[t, s] + gamma[t, s, 1] + beta[t + 1, NEXT_STATES[s, 1]]
            if m0 > max_0:
                max_0 = m0
            if m1 > max_1:
                max_1 = m1
        post[t] = max_0 - max_1
        ext[t] = post[t] - sys_llr[t] - apr_llr[t]

    return ext, post


# ============================================================================
# TURBO DECODER
# ============================================================================

class LTE_TurboDecoder:
    """
    LTE Turbo Decoder - Max-Log-MAP Implementation

    Implements iterative turbo decoding for PCCC using Max-Log-MAP SISO
    algorithm for constituent RSC decoders.

    Based on 3GPP TS 36.212 Section 5.1.3.2
    """

    @staticmethod
    def split_streams(soft_input: np.ndarray, K: int):
        """
        Demultiplex [S P1 P2] into per-encoder systematic/parity streams

        Undoes the tail multiplexing of TS 36.212 Section 5.1.3.2.2.

        Returns:
            (sys1, par1, par2, tail_sys2), sys1/par1/par2 of length K+3
        """
        N = K + 4
        S = soft_input[0:N]
        P1 = soft_input[N:2 * N]
        P2 = soft_input[2 * N:3 * N]

        sys1 = np.concatenate([S[:K], [S[K], P2[K], P1[K + 1]]])
        par1 = np.concatenate([P1[:K], [P1[K], S[K + 1], P2[K + 1]]])
        par2 = np.concatenate([P2[:K], [P1[K + 2], S[K + 3], P2[K + 3]]])
        tail_sys2 = np.array([S[K + 2], P2[K + 2], P1[K + 3]])
        return sys1, par1, par2, tail_sys2

    def decode(self, soft_input: np.ndarray, K: int,
               num_iterations: int = 5) -> Tuple[np.ndarray, bool]:
        """
        Turbo decode soft input data

        Parameters:
            soft_input: Soft input LLRs in [S P1 P2] format (length 3*(K+4))
            K: Information block size (before tail bits)
            num_iterations: Number of decoding iterations (1-30)

        Returns:
            decoded: Hard bits (int8, length K)
            converged: True when both constituent decoders agree on every
                       hard decision after the last iteration
        """
        perm = qpp_permutation(K)
        soft = np.clip(np.asarray(soft_input, dtype=np.float64), -LLR_LIMIT, LLR_LIMIT)

        sys1, par1, par2, tail_sys2 = self.split_streams(soft, K)
        sys2 = np.concatenate([sys1[:K][perm], tail_sys2])

        apr1 = np.zeros(K, dtype=np.float64)
        post1 = np.zeros(K, dtype=np.float64)
        post2 = np.zeros(K, dtype=np.float64)

        for _ in range(num_iterations):
            # Decoder 1 works in natural order
            ext1, post1 = _siso_decode_maxlog_numba(sys1, par1, apr1, K)

            # Decoder 2 works in interleaved order: c'[i] = c[perm[i]]
            ext2, post2_int = _siso_decode_maxlog_numba(sys2, par2, ext1[perm], K)

            apr1 = np.empty(K, dtype=np.float64)
            apr1[perm] = ext2
            post2 = np.empty(K, dtype=np.float64)
            post2[perm] = post2_int

        hard1 = (post1 < 0).astype(np.int8)
        decoded = (post2 < 0).astype(np.int8)
        converged = bool(np.array_equal(hard1, decoded))

        return decoded, converged


def _block_size(n: int) -> int:
    if n % 3 != 0:
        raise ConfigurationError(f"Input length ({n}) must be multiple of 3")
    K = n // 3 - 4
    if K < 40 or K > 6144:
        raise ConfigurationError(f"Invalid block size K={K}, must be in range [40, 6144]")
    return K


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTION
# ============================================================================

def lteTurboDecode(in_data: Union[np.ndarray, List[np.ndarray]],
                   nturbodecits: int = 5):
    """
    MATLAB lteTurboDecode equivalent - Turbo decoding

    Syntax:
        out, converged = lteTurboDecode(in)
        out, converged = lteTurboDecode(in, nturbodecits)

    Parameters:
        in_data: Soft bit input data - vector or cell array (list) of vectors
                 Expected to be PCCC encoded in [S P1 P2] format
                 Positive LLR = bit 0, Negative LLR = bit 1
        nturbodecits: Number of turbo decoding iteration cycles (1-30)
                     Optional, default: 5

    Returns:
        out: Decoded bits as int8 vector or cell array of int8 vectors
        converged: bool, or list of bools for cell array input

    Example:
        txBits = np.random.default_rng(0).integers(0, 2, 6144)
        codedData = lteTurboEncode(txBits)
        softBits = np.where(codedData == 1, -10.0, 10.0)
        rxBits, ok = lteTurboDecode(softBits)
    """
    if nturbodecits < 1 or nturbodecits > 30:
        raise ConfigurationError(
            f"Number of iterations must be between 1 and 30, got {nturbodecits}")

    decoder = LTE_TurboDecoder()

    if isinstance(in_data, list):
        result = []
        flags = []
        for code_block in in_data:
            soft_block = np.asarray(code_block, dtype=np.float64)
            if len(soft_block) == 0:
                result.append(np.array([], dtype=np.int8))
                flags.append(True)
                continue
            decoded, converged = decoder.decode(
                soft_block, _block_size(len(soft_block)), nturbodecits)
            result.append(decoded)
            flags.append(converged)
        return result, flags

    soft_data = np.asarray(in_data, dtype=np.float64)
    if len(soft_data) == 0:
        return np.array([], dtype=np.int8), True
    return decoder.decode(soft_data, _block_size(len(soft_data)), nturbodecits)


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from turbo_encode import lteTurboEncode

    print("=" * 70)
    print("LTE Turbo Decode - Max-Log-MAP Implementation")
    print("=" * 70)
    print()

    rng = np.random.default_rng(7)
    K = 1024
    txBits = rng.integers(0, 2, K).astype(np.int8)
    encoded = lteTurboEncode(txBits)

    # BPSK over AWGN: 0 -> +1, 1 -> -1
    snr_db = 1.0
    noise_var = 10 ** (-snr_db / 10)
    received = (1.0 - 2.0 * encoded) + rng.standard_normal(len(encoded)) * np.sqrt(noise_var)
    softBits = received * (2.0 / noise_var)

    rxBits, converged = lteTurboDecode(softBits, nturbodecits=8)
    errors = int(np.sum(rxBits != txBits))
    print(f"SNR {snr_db} dB: {errors} / {K} bit errors, converged={converged}")
