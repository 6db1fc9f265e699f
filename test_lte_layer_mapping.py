"""
Test lteLayerMap / lteLayerDemap

Key Requirements:
1. Codeword 0 on floor(L/2) layers, codeword 1 on ceil(L/2) layers
2. Layer j of a codeword carries symbols j, j+L, j+2L, ...
3. Transmit diversity: 2 or 4 layers, two null symbols for 4 layers when
   the symbol count is not a multiple of 4
4. Demapping is the exact inverse
"""

import numpy as np
import pytest

from lte_config import Beamforming, ChannelConfig, Port0, SpatialMux, TxDiversity
from lte_errors import ConfigurationError
from lte_layer_mapping import codeword_layers, lteLayerDemap, lteLayerMap


def random_symbols(rng, n):
    return rng.standard_normal(n) + 1j * rng.standard_normal(n)


def test_codeword_layers():
    assert codeword_layers(1, 1) == [1]
    assert codeword_layers(4, 1) == [4]
    expected = {2: [1, 1], 3: [1, 2], 4: [2, 2], 5: [2, 3], 6: [3, 3], 7: [3, 4], 8: [4, 4]}
    for nlayers, layers in expected.items():
        assert codeword_layers(nlayers, 2) == layers
    with pytest.raises(ConfigurationError):
        codeword_layers(1, 2)


def test_single_layer():
    chs = ChannelConfig(TxScheme=Port0())
    d = np.arange(5) + 1j
    layers = lteLayerMap(chs, d)
    assert layers.shape == (5, 1)
    assert np.array_equal(lteLayerDemap(chs, layers)[0], d)


def test_two_codewords_three_layers():
    chs = ChannelConfig(TxScheme=SpatialMux(3, 4), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
    cw0 = np.arange(4) + 0j
    cw1 = np.arange(8) + 100j
    layers = lteLayerMap(chs, [cw0, cw1])

    assert layers.shape == (4, 3)
    assert np.array_equal(layers[:, 0], cw0)
    assert np.array_equal(layers[:, 1], cw1[0::2])
    assert np.array_equal(layers[:, 2], cw1[1::2])

    back = lteLayerDemap(chs, layers)
    assert np.array_equal(back[0], cw0)
    assert np.array_equal(back[1], cw1)


def test_eight_layer_round_trip():
    rng = np.random.default_rng(41)
    chs = ChannelConfig(TxScheme=Beamforming('Port7-14', 8, np.eye(8)),
                        Modulation=('64QAM', '64QAM'), RV=(0, 0))
    cws = [random_symbols(rng, 40), random_symbols(rng, 40)]
    layers = lteLayerMap(chs, cws)
    assert layers.shape == (10, 8)
    back = lteLayerDemap(chs, layers)
    assert all(np.array_equal(a, b) for a, b in zip(back, cws))


def test_tx_diversity_two_layers():
    chs = ChannelConfig(TxScheme=TxDiversity(2))
    d = np.arange(6) + 0j
    layers = lteLayerMap(chs, d)
    assert layers.shape == (3, 2)
    assert np.array_equal(layers[:, 0], d[0::2])
    assert np.array_equal(lteLayerDemap(chs, layers)[0], d)


def test_tx_diversity_four_layers_null_symbols():
    chs = ChannelConfig(TxScheme=TxDiversity(4))
    d = np.arange(1, 7) + 0j
    layers = lteLayerMap(chs, d)
    assert layers.shape == (2, 4)
    assert np.array_equal(layers.reshape(-1)[6:], [0, 0])

    assert len(lteLayerDemap(chs, layers)[0]) == 8
    assert np.array_equal(lteLayerDemap(chs, layers, n_symbols=6)[0], d)

    # No padding when the count is a multiple of 4
    assert lteLayerMap(chs, np.arange(8) + 0j).shape == (2, 4)


def test_unequal_symbols_per_layer():
    chs = ChannelConfig(TxScheme=SpatialMux(2, 2), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
    with pytest.raises(ConfigurationError):
        lteLayerMap(chs, [np.zeros(4, complex), np.zeros(6, complex)])


def test_not_divisible_by_layers():
    chs = ChannelConfig(TxScheme=SpatialMux(4, 4), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
    with pytest.raises(ConfigurationError):
        lteLayerMap(chs, [np.zeros(5, complex), np.zeros(6, complex)])


def test_tx_diversity_single_codeword_only():
    chs = ChannelConfig(TxScheme=TxDiversity(2))
    with pytest.raises(ConfigurationError):
        lteLayerMap(chs, [np.zeros(4, complex), np.zeros(4, complex)])


def test_demap_wrong_layer_count():
    chs = ChannelConfig(TxScheme=SpatialMux(2, 2), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
    with pytest.raises(ConfigurationError):
        lteLayerDemap(chs, np.zeros((4, 3), complex))


if __name__ == "__main__":
    print("=" * 70)
    print("Layer Mapping Test Suite")
    print("=" * 70)

    test_codeword_layers()
    test_single_layer()
    test_two_codewords_three_layers()
    test_eight_layer_round_trip()
    test_tx_diversity_two_layers()
    test_tx_diversity_four_layers_null_symbols()
    test_unequal_symbols_per_layer()
    test_not_divisible_by_layers()
    test_tx_diversity_single_codeword_only()
    test_demap_wrong_layer_count()

    print("ALL TESTS PASSED")
