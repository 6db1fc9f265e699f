"""
LTE PDSCH Layer Mapping - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteLayerMap / lteLayerDemap

MATLAB Compatibility:
- Output is a (symbols per layer)-by-NLayers matrix
- Single port schemes: one layer
- Transmit diversity: one codeword on 2 or 4 layers; for 4 layers two
  null symbols are appended when the symbol count is not a multiple of 4
- Spatial multiplexing (SpatialMux, CDD, Port7-8, Port7-14): one or two
  codewords on up to 8 layers, codeword 0 on floor(NLayers/2) layers and
  codeword 1 on the remaining ceil(NLayers/2) layers
- Layer j of a codeword mapped to L layers carries d(L*i + j)

Based on 3GPP TS 36.211 Section 6.3.3
"""

import numpy as np
from typing import List, Optional, Sequence, Union

from lte_errors import ConfigurationError


def codeword_layers(nlayers: int, ncodewords: int) -> List[int]:
    """
    Number of layers each codeword is mapped onto

    Examples:
        >>> codeword_layers(3, 2)
        [1, 2]
        >>> codeword_layers(4, 1)
        [4]
    """
    if ncodewords == 1:
        return [nlayers]
    if ncodewords == 2:
        if nlayers < 2:
            raise ConfigurationError(f"Two codewords need at least 2 layers, got {nlayers}")
        return [nlayers // 2, nlayers - nlayers // 2]
    raise ConfigurationError(f"One or two codewords are supported, got {ncodewords}")


def _as_codewords(cws) -> List[np.ndarray]:
    if isinstance(cws, np.ndarray) and cws.ndim == 1:
        return [cws]
    return [np.asarray(cw, dtype=np.complex128) for cw in cws]


def lteLayerMap(chs, cws: Union[np.ndarray, Sequence[np.ndarray]]) -> np.ndarray:
    """
    MATLAB lteLayerMap equivalent - PDSCH layer mapping

    Syntax:
        layers = lteLayerMap(chs, cws)

    Parameters:
        chs: Channel settings (lte_config.ChannelConfig); uses TxScheme and NLayers
        cws: Complex symbols of one codeword, or a list of one or two codewords

    Returns:
        layers: Complex (symbols per layer)-by-NLayers matrix

    Examples:
        >>> from lte_config import ChannelConfig, SpatialMux
        >>> chs = ChannelConfig(TxScheme=SpatialMux(2, 2), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
        >>> lteLayerMap(chs, [np.arange(3), np.arange(3) + 10]).real.tolist()
        [[0.0, 10.0], [1.0, 11.0], [2.0, 12.0]]
    """
    codewords = _as_codewords(cws)
    nlayers = chs.NLayers
    scheme = chs.TxScheme.name

    if scheme == 'TxDiversity':
        if len(codewords) != 1:
            raise ConfigurationError("TxDiversity transmits a single codeword")
        if nlayers not in (2, 4):
            raise ConfigurationError(f"TxDiversity requires 2 or 4 layers, got {nlayers}")
        d = codewords[0]
        if nlayers == 4 and len(d) % 4 != 0:
            d = np.concatenate([d, np.zeros(2, dtype=d.dtype)])
        if len(d) % nlayers != 0:
            raise ConfigurationError(
                f"{len(codewords[0])} symbols cannot be mapped onto {nlayers} diversity layers")
        return d.reshape(-1, nlayers)

    layers_per_cw = codeword_layers(nlayers, len(codewords))
    mapped = []
    for n, (d, L) in enumerate(zip(codewords, layers_per_cw)):
        if len(d) % L != 0:
            raise ConfigurationError(
                f"Codeword {n} has {len(d)} symbols, not a multiple of its {L} layer(s)")
        mapped.append(d.reshape(-1, L))

    if len({m.shape[0] for m in mapped}) != 1:
        raise ConfigurationError(
            f"Codewords give unequal symbols per layer: {[m.shape[0] for m in mapped]}")

    return np.hstack(mapped)


def lteLayerDemap(chs, layers: np.ndarray,
                  n_symbols: Optional[Union[int, Sequence[int]]] = None) -> List[np.ndarray]:
    """
    MATLAB lteLayerDemap equivalent - PDSCH layer demapping

    Exact inverse of lteLayerMap, with the same codeword-to-layer rule. The
    number of codewords is taken from chs.NCodewords.

    Parameters:
        chs: Channel settings (lte_config.ChannelConfig)
        layers: (symbols per layer)-by-NLayers matrix
        n_symbols: Optional symbols per codeword; strips the null symbols
                   added for 4-layer transmit diversity

    Returns:
        List of one or two complex codeword symbol vectors
    """
    layers = np.atleast_2d(np.asarray(layers, dtype=np.complex128))
    if layers.shape[0] == 1 and chs.NLayers == 1 and layers.shape[1] != 1:
        layers = layers.T
    nlayers = chs.NLayers
    if layers.shape[1] != nlayers:
        raise ConfigurationError(
            f"Expected {nlayers} layer column(s), got {layers.shape[1]}")

    if chs.TxScheme.name == 'TxDiversity':
        codewords = [layers.reshape(-1)]
    else:
        codewords = []
        start = 0
        for L in codeword_layers(nlayers, chs.NCodewords):
            codewords.append(layers[:, start:start + L].reshape(-1))
            start += L

    if n_symbols is not None:
        counts = [n_symbols] * len(codewords) if np.isscalar(n_symbols) else list(n_symbols)
        codewords = [cw[:m] for cw, m in zip(codewords, counts)]

    return codewords


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import ChannelConfig, SpatialMux, TxDiversity

    print("=" * 70)
    print("LTE Layer Mapping - MATLAB lteLayerMap/lteLayerDemap Equivalent")
    print("=" * 70)
    print()

    chs = ChannelConfig(TxScheme=SpatialMux(NLayers=3, NTxAnts=4), Modulation=('QPSK', 'QPSK'), RV=(0, 0))
    cw0 = np.arange(4) + 0j
    cw1 = np.arange(8) + 100j
    layers = lteLayerMap(chs, [cw0, cw1])
    print(f"SpatialMux 3 layers: {layers.shape}")
    back = lteLayerDemap(chs, layers)
    print(f"Round trip: {np.array_equal(back[0], cw0) and np.array_equal(back[1], cw1)}")

    chs = ChannelConfig(TxScheme=TxDiversity(NTxAnts=4))
    layers = lteLayerMap(chs, np.arange(6) + 0j)
    print(f"TxDiversity 4 layers, 6 symbols -> {layers.shape} (2 null symbols appended)")
