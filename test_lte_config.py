"""
Test the cell/channel configuration model and its validation

Key Requirements:
1. Invalid field values rejected at construction
2. Inconsistent cell/channel combinations rejected by validate_configuration
3. Per-codeword view: layers, Qm, KMIMO, MDLHARQ for rate matching
"""

import numpy as np
import pytest

from lte_config import (CDD, Beamforming, CellConfig, ChannelConfig, Port0, SpatialMux,
                        TxDiversity, validate_configuration)
from lte_errors import ConfigurationError


def test_cell_defaults():
    enb = CellConfig()
    assert enb.NDLRB == 50
    assert enb.MDLHARQ == 8
    assert CellConfig(DuplexMode='TDD', TDDConfig=2).MDLHARQ == 10
    assert CellConfig(DuplexMode='TDD', TDDConfig=6).MDLHARQ == 6


@pytest.mark.parametrize("fields", [
    dict(NDLRB=5), dict(NDLRB=111), dict(CellRefP=3), dict(NCellID=504),
    dict(CyclicPrefix='Short'), dict(DuplexMode='HD'), dict(TDDConfig=7),
    dict(NSubframe=10), dict(CFI=4),
])
def test_invalid_cell(fields):
    with pytest.raises(ConfigurationError):
        CellConfig(**fields)


def test_scheme_constraints():
    with pytest.raises(ConfigurationError):
        TxDiversity(NTxAnts=3)
    with pytest.raises(ConfigurationError):
        SpatialMux(NLayers=3, NTxAnts=2)
    with pytest.raises(ConfigurationError):
        SpatialMux(NLayers=2, NTxAnts=2, PMI=3)
    with pytest.raises(ConfigurationError):
        CDD(NLayers=1, NTxAnts=2)
    with pytest.raises(ConfigurationError):
        Beamforming('Port5', 2, np.ones((2, 4)))
    with pytest.raises(ConfigurationError):
        Beamforming('Port7-8', 2, np.ones((1, 4)))
    with pytest.raises(ConfigurationError):
        Beamforming('Port9', 1, np.ones((1, 4)))
    with pytest.raises(ConfigurationError):
        Beamforming('Port8', 1)


@pytest.mark.parametrize("fields", [
    dict(Modulation=('8PSK',)), dict(Modulation=('QPSK', 'QPSK', 'QPSK'), RV=(0, 0, 0)),
    dict(RV=(4,)), dict(RV=(0, 0)), dict(RNTI=0), dict(NSoftbits=0),
    dict(NTurboDecIts=31), dict(NTurboDecIts=0),
    dict(TxScheme='SpatialMux'), dict(TxScheme=SpatialMux),
])
def test_invalid_channel(fields):
    with pytest.raises(ConfigurationError):
        ChannelConfig(**fields)


def test_channel_normalizes_scalars():
    chs = ChannelConfig(Modulation='16QAM', RV=2)
    assert chs.Modulation == ('16QAM',)
    assert chs.RV == (2,)
    assert chs.NCodewords == 1


def test_codeword_view_spatial_mux():
    enb = CellConfig(CellRefP=4)
    chs = ChannelConfig(TxScheme=SpatialMux(3, 4, 2), Modulation=('QPSK', '64QAM'),
                        RV=(0, 1), NSoftbits=1237248)
    cw0 = chs.codeword(enb, 0)
    cw1 = chs.codeword(enb, 1)
    assert (cw0.NLayers, cw1.NLayers) == (1, 2)
    assert (cw0.Qm, cw1.Qm) == (2, 6)
    assert (cw0.RV, cw1.RV) == (0, 1)
    assert cw0.KMIMO == 2
    assert cw0.MDLHARQ == 8
    assert cw1.NL == 2
    with pytest.raises(ConfigurationError):
        chs.codeword(enb, 2)


def test_codeword_view_tx_diversity():
    enb = CellConfig(CellRefP=4, DuplexMode='TDD', TDDConfig=5)
    cw = ChannelConfig(TxScheme=TxDiversity(4)).codeword(enb, 0)
    assert cw.NLayers == 4
    assert cw.NL == 2
    assert cw.KMIMO == 1
    assert cw.MDLHARQ == 15


def test_validate_configuration():
    validate_configuration(CellConfig(CellRefP=2),
                           ChannelConfig(TxScheme=CDD(2, 2), Modulation=('QPSK', 'QPSK'), RV=(0, 0)))
    validate_configuration(CellConfig(CellRefP=1),
                           ChannelConfig(TxScheme=Beamforming('Port7-8', 2, np.ones((2, 8))),
                                         Modulation=('QPSK', '16QAM'), RV=(0, 0)))

    # CRS based schemes use every cell-specific RS port
    with pytest.raises(ConfigurationError):
        validate_configuration(CellConfig(CellRefP=2), ChannelConfig(TxScheme=SpatialMux(2, 4)))

    # Transmit diversity and Port0 carry a single codeword
    with pytest.raises(ConfigurationError):
        validate_configuration(CellConfig(CellRefP=2),
                               ChannelConfig(TxScheme=TxDiversity(2), Modulation=('QPSK', 'QPSK'),
                                             RV=(0, 0)))
    with pytest.raises(ConfigurationError):
        validate_configuration(CellConfig(), ChannelConfig(TxScheme=Port0(),
                                                           Modulation=('QPSK', 'QPSK'), RV=(0, 0)))

    # Two codewords need two layers
    with pytest.raises(ConfigurationError):
        validate_configuration(CellConfig(CellRefP=2),
                               ChannelConfig(TxScheme=SpatialMux(1, 2), Modulation=('QPSK', 'QPSK'),
                                             RV=(0, 0)))

    with pytest.raises(ConfigurationError):
        validate_configuration(CellConfig(NDLRB=6), ChannelConfig(PRBSet=(0, 6)))


if __name__ == "__main__":
    print("=" * 70)
    print("Configuration Test Suite")
    print("=" * 70)

    test_cell_defaults()
    test_scheme_constraints()
    test_channel_normalizes_scalars()
    test_codeword_view_spatial_mux()
    test_codeword_view_tx_diversity()
    test_validate_configuration()

    print("ALL TESTS PASSED")
