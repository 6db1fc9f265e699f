"""
Test PDSCHProcessingChain - transport blocks to antenna symbols and back

MATLAB Documentation Example (PDSCHProcessingChainExample, R.14 style):
    enb.NDLRB = 50; enb.CellRefP = 4; enb.NCellID = 0; enb.CFI = 2;
    pdsch.TxScheme = 'SpatialMux'; pdsch.NLayers = 2; pdsch.PMISet = 0;
    pdsch.Modulation = {'16QAM','16QAM'}; pdsch.RV = [0 0]; pdsch.RNTI = 1;
    pdsch.NSoftbits = 1237248; TrBlkSizes = [11448 11448]; G = [24064 24064];

Key Requirements:
1. Noiseless chain recovers every transport block with crc_error False
2. Thread pool execution gives the same result as sequential execution
3. HARQ soft buffers supplied by the caller are combined across calls
4. Inconsistent configurations rejected at construction
"""

import logging

import numpy as np
import pytest

from lte_config import CDD, Beamforming, CellConfig, ChannelConfig, SpatialMux, TxDiversity
from lte_errors import ConfigurationError
from pdsch_processing_chain import PDSCHProcessingChain
from rate_recover_turbo import SoftBuffer


def r14_chain(max_workers=1):
    enb = CellConfig(NDLRB=50, CellRefP=4, NCellID=0, CFI=2)
    pdsch = ChannelConfig(TxScheme=SpatialMux(NLayers=2, NTxAnts=4, PMI=0),
                          Modulation=('16QAM', '16QAM'), RV=(0, 0), RNTI=1,
                          NSoftbits=1237248)
    return PDSCHProcessingChain(enb, pdsch, max_workers=max_workers)


def random_trblks(rng, lengths):
    return [rng.integers(0, 2, n).astype(np.int8) for n in lengths]


def assert_recovered(result, trblks):
    assert result.crc_error == [False] * len(trblks)
    for a, b in zip(result.trblks, trblks):
        assert np.array_equal(a, b)


def test_matlab_example_r14():
    rng = np.random.default_rng(301)
    chain = r14_chain()
    trblks = random_trblks(rng, [11448, 11448])

    tx, cws = chain.encode(trblks, [24064, 24064])
    assert [len(cw) for cw in cws] == [24064, 24064]
    assert tx.shape == (6016, 4)

    result = chain.decode(tx, [11448, 11448])
    assert_recovered(result, trblks)
    assert [len(err) for err in result.seg_crc_error] == [2, 2]
    assert all(all(c) for c in result.converged)
    assert [len(s) for s in result.softbits] == [24064, 24064]


def test_r14_with_noise():
    rng = np.random.default_rng(302)
    chain = r14_chain()
    trblks = random_trblks(rng, [11448, 11448])
    tx, _ = chain.encode(trblks, [24064, 24064])

    noise_var = 0.02
    rx = tx + np.sqrt(noise_var / 2) * (rng.standard_normal(tx.shape)
                                        + 1j * rng.standard_normal(tx.shape))
    assert_recovered(chain.decode(rx, [11448, 11448], noise_var=noise_var), trblks)


def test_thread_pool_matches_sequential():
    rng = np.random.default_rng(303)
    trblks = random_trblks(rng, [11448, 11448])
    sequential = r14_chain(max_workers=1)
    pooled = r14_chain(max_workers=2)

    tx1, cws1 = sequential.encode(trblks, [24064, 24064])
    tx2, cws2 = pooled.encode(trblks, [24064, 24064])
    assert np.array_equal(tx1, tx2)
    assert all(np.array_equal(a, b) for a, b in zip(cws1, cws2))

    r1 = sequential.decode(tx1, [11448, 11448])
    r2 = pooled.decode(tx2, [11448, 11448])
    assert r1.crc_error == r2.crc_error == [False, False]
    assert all(np.array_equal(a, b) for a, b in zip(r1.trblks, r2.trblks))
    assert all(np.allclose(a, b) for a, b in zip(r1.softbits, r2.softbits))


def test_tx_diversity_four_antennas():
    rng = np.random.default_rng(304)
    chain = PDSCHProcessingChain(CellConfig(CellRefP=4),
                                 ChannelConfig(TxScheme=TxDiversity(4), Modulation='QPSK'))
    trblks = random_trblks(rng, [1000])
    tx, _ = chain.encode(trblks, [2400])
    assert tx.shape == (1200, 4)
    assert_recovered(chain.decode(tx, [1000]), trblks)


def test_cdd_two_codewords():
    rng = np.random.default_rng(305)
    chain = PDSCHProcessingChain(CellConfig(CellRefP=4),
                                 ChannelConfig(TxScheme=CDD(4, 4), Modulation=('QPSK', '16QAM'),
                                               RV=(0, 0)),
                                 max_workers=2)
    trblks = random_trblks(rng, [1500, 4000])
    tx, _ = chain.encode(trblks, [4000, 8000])
    assert tx.shape == (1000, 4)
    assert_recovered(chain.decode(tx, [1500, 4000]), trblks)


def test_beamforming_port7_8():
    rng = np.random.default_rng(306)
    W = rng.standard_normal((2, 4)) + 1j * rng.standard_normal((2, 4))
    chain = PDSCHProcessingChain(CellConfig(),
                                 ChannelConfig(TxScheme=Beamforming('Port7-8', 2, W),
                                               Modulation=('QPSK', '16QAM'), RV=(0, 0)))
    trblks = random_trblks(rng, [1000, 2500])
    tx, _ = chain.encode(trblks, [3000, 6000])
    assert tx.shape == (1500, 4)
    assert_recovered(chain.decode(tx, [1000, 2500]), trblks)


def test_harq_retransmission():
    rng = np.random.default_rng(307)
    enb = CellConfig()
    trblks = random_trblks(rng, [2000])
    buffers = [SoftBuffer()]

    for rv in (0, 2):
        chain = PDSCHProcessingChain(enb, ChannelConfig(Modulation='QPSK', RV=rv))
        tx, _ = chain.encode(trblks, [3000])
        result = chain.decode(tx, [2000], soft_buffers=buffers)

    assert_recovered(result, trblks)
    assert result.soft_buffers[0] is buffers[0]
    assert np.count_nonzero(buffers[0][0]) > 3000

    buffers[0].reset()
    assert buffers[0].is_empty


def test_shared_soft_buffer_rejected():
    rng = np.random.default_rng(309)
    chain = PDSCHProcessingChain(CellConfig(CellRefP=2),
                                 ChannelConfig(TxScheme=SpatialMux(2, 2), Modulation=('QPSK', 'QPSK'),
                                               RV=(0, 0)),
                                 max_workers=2)
    trblks = random_trblks(rng, [1000, 1000])
    tx, _ = chain.encode(trblks, [3000, 3000])

    buf = SoftBuffer()
    with pytest.raises(ConfigurationError):
        chain.decode(tx, [1000, 1000], soft_buffers=[buf, buf])
    assert buf.is_empty

    assert_recovered(chain.decode(tx, [1000, 1000], soft_buffers=[buf, SoftBuffer()]), trblks)


def test_crc_outcome_logged(caplog):
    rng = np.random.default_rng(308)
    chain = PDSCHProcessingChain(CellConfig(), ChannelConfig())
    trblks = random_trblks(rng, [500])
    tx, _ = chain.encode(trblks, [2000])
    with caplog.at_level(logging.INFO, logger='pdsch_processing_chain'):
        chain.decode(tx, [500])
    assert "CRC passed" in caplog.text


def test_configuration_errors():
    with pytest.raises(ConfigurationError):
        PDSCHProcessingChain(CellConfig(CellRefP=2), ChannelConfig(TxScheme=SpatialMux(2, 4)))
    with pytest.raises(ConfigurationError):
        PDSCHProcessingChain(CellConfig(), ChannelConfig(), max_workers=0)

    chain = r14_chain()
    with pytest.raises(ConfigurationError):
        chain.encode([np.zeros(11448, dtype=int)], [24064, 24064])
    with pytest.raises(ConfigurationError):
        chain.decode(np.zeros((6016, 4), complex), [11448])


if __name__ == "__main__":
    print("=" * 70)
    print("PDSCH Processing Chain Test Suite")
    print("=" * 70)

    test_matlab_example_r14()
    test_r14_with_noise()
    test_thread_pool_matches_sequential()
    test_tx_diversity_four_antennas()
    test_cdd_two_codewords()
    test_beamforming_port7_8()
    test_harq_retransmission()
    test_shared_soft_buffer_rejected()
    test_configuration_errors()

    print("ALL TESTS PASSED")
