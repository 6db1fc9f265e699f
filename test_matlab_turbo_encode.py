"""
Test lteTurboEncode - MATLAB Documentation Examples

MATLAB Documentation Example:
    bits = lteTurboEncode({ones(40,1), ones(6144,1)})
    % bits = {132x1 int8}  {18444x1 int8}

Key Requirements:
1. Output [S P1 P2] block-wise, each K+4 bits
2. Systematic part equals the input
3. Filler bits (-1) passed through to S and P1, encoded as 0
4. Only the interleaver sizes of TS 36.212 Table 5.1.3-3
"""

import numpy as np
import pytest

from lte_errors import ConfigurationError
from turbo_encode import LTE_TurboEncoder, QPP_PARAMS, lteTurboEncode, qpp_permutation


def test_matlab_example_lengths():
    bits = lteTurboEncode([np.ones(40, dtype=int), np.ones(6144, dtype=int)])
    assert [len(b) for b in bits] == [132, 18444]
    assert all(b.dtype == np.int8 for b in bits)


def test_systematic_part():
    rng = np.random.default_rng(1)
    for K in (40, 512, 1056, 6144):
        c = rng.integers(0, 2, K)
        d0, d1, d2 = LTE_TurboEncoder().turbo_encode(c)
        assert len(d0) == len(d1) == len(d2) == K + 4
        assert np.array_equal(d0[:K], c)
        assert np.all((d1 == 0) | (d1 == 1))
        assert np.all((d2 == 0) | (d2 == 1))


def test_all_zero_input_gives_all_zero_output():
    out = lteTurboEncode(np.zeros(104, dtype=int))
    assert not np.any(out)


def test_filler_bits():
    c = np.ones(64, dtype=int)
    c[:7] = -1
    d0, d1, d2 = LTE_TurboEncoder().turbo_encode(c)

    assert np.all(d0[:7] == -1)
    assert np.all(d1[:7] == -1)
    assert not np.any(d2 < 0)

    # Filler bits are encoded as zeros
    z0, z1, z2 = LTE_TurboEncoder().turbo_encode(np.where(c < 0, 0, c))
    assert np.array_equal(d1[7:], z1[7:])
    assert np.array_equal(d2, z2)


def test_qpp_permutation():
    perm = qpp_permutation(40)
    assert sorted(perm.tolist()) == list(range(40))
    f1, f2 = QPP_PARAMS[40]
    assert perm[1] == (f1 + f2) % 40
    for K in (1008, 4096, 6144):
        assert len(np.unique(qpp_permutation(K))) == K


def test_invalid_block_size():
    with pytest.raises(ConfigurationError):
        lteTurboEncode(np.ones(41, dtype=int))


if __name__ == "__main__":
    print("=" * 70)
    print("MATLAB lteTurboEncode Test Suite")
    print("=" * 70)

    test_matlab_example_lengths()
    test_systematic_part()
    test_all_zero_input_gives_all_zero_output()
    test_filler_bits()
    test_qpp_permutation()
    test_invalid_block_size()

    print("ALL TESTS PASSED")
