"""
LTE PDSCH Physical Channel Processing - MATLAB-Compatible Implementation
Python equivalent of MATLAB ltePDSCH / ltePDSCHDecode

Transmit:
    scrambling -> modulation -> layer mapping -> precoding
Receive:
    deprecoding -> layer demapping -> soft demodulation -> descrambling

The antenna symbols are a (symbols per antenna)-by-NTxAnts matrix; resource
element mapping is left to the caller.

Based on 3GPP TS 36.211 Section 6.3 and 6.4
"""

import logging
import numpy as np
from typing import List, Sequence, Tuple

from lte_config import CellConfig, ChannelConfig, validate_configuration
from lte_errors import ConfigurationError
from lte_layer_mapping import lteLayerDemap, lteLayerMap
from lte_modulation import lteSymbolDemodulate, lteSymbolModulate
from lte_precoding import lteDLDeprecode, lteDLPrecode
from lte_scrambling import lteDescramble, lteScramble, ltePDSCHPRBS

logger = logging.getLogger(__name__)


def _is_tx_diversity4(chs: ChannelConfig) -> bool:
    return chs.TxScheme.name == 'TxDiversity' and chs.NTxAnts == 4


def ltePDSCH(enb: CellConfig, chs: ChannelConfig, cws: Sequence[np.ndarray]) -> np.ndarray:
    """
    MATLAB ltePDSCH equivalent - PDSCH modulation symbols

    Syntax:
        sym = ltePDSCH(enb, chs, cws)

    Parameters:
        enb: Cell-wide settings (NCellID, NSubframe, CellRefP)
        chs: Channel settings (TxScheme, Modulation, RNTI)
        cws: One binary codeword per configured codeword (or a single vector)

    Returns:
        Complex (symbols per antenna)-by-NTxAnts matrix. For 4 antenna
        transmit diversity the symbols per antenna equal the codeword symbol
        count, the two null symbols of layer mapping are not transmitted.
    """
    validate_configuration(enb, chs)
    if isinstance(cws, np.ndarray) and cws.ndim == 1:
        cws = [cws]
    if len(cws) != chs.NCodewords:
        raise ConfigurationError(
            f"Expected {chs.NCodewords} codeword(s), got {len(cws)}")

    symbols = []
    for q, cw in enumerate(cws):
        cw = np.asarray(cw)
        seq = ltePDSCHPRBS(enb, chs.RNTI, q, len(cw))
        symbols.append(lteSymbolModulate(lteScramble(cw, seq), chs.Modulation[q]))
        logger.debug("PDSCH codeword %d: %d bits, %s, %d symbols",
                     q, len(cw), chs.Modulation[q], len(symbols[-1]))

    layers = lteLayerMap(chs, symbols)
    precoded = lteDLPrecode(enb, chs, layers)

    if _is_tx_diversity4(chs):
        precoded = precoded[:len(symbols[0])]
    return precoded


def ltePDSCHDecode(enb: CellConfig, chs: ChannelConfig, rx: np.ndarray,
                   noise_var: float = 1.0) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """
    MATLAB ltePDSCHDecode equivalent - PDSCH decoding to soft codewords

    Syntax:
        cws, symbols = ltePDSCHDecode(enb, chs, rx)
        cws, symbols = ltePDSCHDecode(enb, chs, rx, noise_var)

    Parameters:
        enb: Cell-wide settings
        chs: Channel settings
        rx: Received (symbols per antenna)-by-NTxAnts matrix, already
            equalized for the propagation channel
        noise_var: Noise variance scaling the soft values

    Returns:
        cws: Descrambled soft codewords (float64 LLRs, positive = bit 0)
        symbols: Deprecoded and layer demapped symbols per codeword
    """
    validate_configuration(enb, chs)
    rx = np.asarray(rx, dtype=np.complex128)
    if rx.ndim == 1:
        rx = rx.reshape(-1, 1)

    n_symbols = None
    if chs.TxScheme.name == 'TxDiversity':
        n_symbols = rx.shape[0]
        if _is_tx_diversity4(chs) and n_symbols % 4 != 0:
            rx = np.vstack([rx, np.zeros((4 - n_symbols % 4, rx.shape[1]), dtype=rx.dtype)])

    layers = lteDLDeprecode(enb, chs, rx)
    symbols = lteLayerDemap(chs, layers, n_symbols)

    cws = []
    for q, sym in enumerate(symbols):
        softbits = lteSymbolDemodulate(sym, chs.Modulation[q], 'Soft', noise_var)
        seq = ltePDSCHPRBS(enb, chs.RNTI, q, len(softbits), 'signed')
        cws.append(lteDescramble(softbits, seq, 'signed'))
    return cws, symbols


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import TxDiversity

    print("=" * 70)
    print("LTE PDSCH - MATLAB ltePDSCH/ltePDSCHDecode Equivalent")
    print("=" * 70)
    print()

    enb = CellConfig(CellRefP=4, NCellID=17)
    chs = ChannelConfig(TxScheme=TxDiversity(NTxAnts=4), Modulation='64QAM', RNTI=61)
    bits = np.random.default_rng(1).integers(0, 2, 6 * 30).astype(np.int8)
    tx = ltePDSCH(enb, chs, bits)
    print(f"{len(bits)} bits -> antenna symbols {tx.shape}")
    softbits, _ = ltePDSCHDecode(enb, chs, tx)
    print(f"Bit errors after round trip: {int(np.sum((softbits[0] < 0) != bits))}")
