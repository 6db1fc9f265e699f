"""
LTE PDSCH Precoding - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteDLPrecode / lteDLDeprecode

MATLAB Compatibility:
- Input is a (symbols per layer)-by-NLayers matrix, output a
  (symbols per antenna)-by-NTxAnts matrix, i.e. symbols are rows and
  antenna symbols = layer symbols @ M for a per-symbol matrix M
- Port0: transparent
- TxDiversity: SFBC for 2 and 4 antenna ports (TS 36.211 6.3.4.3)
- SpatialMux: codebook precoding selected by PMI (TS 36.211 6.3.4.2.1)
- CDD: large delay CDD, W(i) D(i) U (TS 36.211 6.3.4.2.2)
- Port5, Port7-8, Port8, Port7-14: beamforming matrix W applied as the
  final linear transform
- Deprecoding uses the Moore-Penrose pseudo-inverse of the same effective
  matrices; it is approximate whenever that matrix is not invertible

Based on 3GPP TS 36.211 Section 6.3.4
"""

import numpy as np
from scipy import linalg
from typing import Dict, Tuple

from lte_errors import ConfigurationError


# ============================================================================
# CODEBOOKS (TS 36.211 Tables 6.3.4.2.3-1 and 6.3.4.2.3-2)
# ============================================================================

_S = 1 / np.sqrt(2)

# Generating vectors u_n of the 4 antenna Householder codebook
U_VECTORS = np.array([
    [1, -1, -1, -1],
    [1, -1j, 1, 1j],
    [1, 1, -1, 1],
    [1, 1j, 1, -1j],
    [1, (-1 - 1j) * _S, -1j, (1 - 1j) * _S],
    [1, (1 - 1j) * _S, 1j, (-1 - 1j) * _S],
    [1, (1 + 1j) * _S, -1j, (-1 + 1j) * _S],
    [1, (-1 + 1j) * _S, 1j, (1 + 1j) * _S],
    [1, -1, 1, 1],
    [1, -1j, -1, -1j],
    [1, 1, 1, -1],
    [1, 1j, -1, 1j],
    [1, -1, -1, 1],
    [1, -1, 1, -1],
    [1, 1, -1, -1],
    [1, 1, 1, 1],
], dtype=np.complex128)

# Column subsets of W_n per number of layers (1-based, as in the table)
COLUMN_SUBSETS = {
    1: ['1'] * 16,
    2: ['14', '12', '12', '12', '14', '14', '13', '13',
        '12', '14', '13', '13', '12', '13', '13', '12'],
    3: ['124', '123', '123', '123', '124', '124', '134', '134',
        '124', '134', '123', '134', '123', '123', '123', '123'],
    4: ['1234', '1234', '3214', '3214', '1234', '1234', '1324', '1324',
        '1234', '1234', '1324', '1324', '1234', '1324', '3214', '1234'],
}

CODEBOOK_2TX = {
    1: [np.array([[1], [1]]) * _S,
        np.array([[1], [-1]]) * _S,
        np.array([[1], [1j]]) * _S,
        np.array([[1], [-1j]]) * _S],
    2: [np.array([[1, 0], [0, 1]]) * _S,
        np.array([[1, 1], [1, -1]]) / 2,
        np.array([[1, 1], [1j, -1j]]) / 2],
}


def householder_matrix(n: int) -> np.ndarray:
    """W_n = I - 2 u_n u_n^H / (u_n^H u_n)"""
    u = U_VECTORS[n].reshape(-1, 1)
    return np.eye(4) - 2 * (u @ u.conj().T) / (u.conj().T @ u).real


def precoding_codebook(ntxants: int, nlayers: int, pmi: int) -> np.ndarray:
    """
    Precoding matrix W (NTxAnts-by-NLayers) for a codebook index

    Examples:
        >>> precoding_codebook(2, 1, 0).shape
        (2, 1)
        >>> np.allclose(precoding_codebook(4, 2, 0).conj().T @ precoding_codebook(4, 2, 0), np.eye(2) / 2)
        True
    """
    if ntxants == 2:
        if nlayers not in CODEBOOK_2TX or not 0 <= pmi < len(CODEBOOK_2TX[nlayers]):
            raise ConfigurationError(
                f"No 2 antenna codebook entry for {nlayers} layer(s), index {pmi}")
        return CODEBOOK_2TX[nlayers][pmi].astype(np.complex128)

    if ntxants == 4:
        if nlayers not in COLUMN_SUBSETS or not 0 <= pmi < 16:
            raise ConfigurationError(
                f"No 4 antenna codebook entry for {nlayers} layer(s), index {pmi}")
        cols = [int(c) - 1 for c in COLUMN_SUBSETS[nlayers][pmi]]
        return householder_matrix(pmi)[:, cols] / np.sqrt(nlayers)

    raise ConfigurationError(f"Codebook precoding needs 2 or 4 antennas, got {ntxants}")


# ============================================================================
# EFFECTIVE PRECODING MATRICES
# ============================================================================

def cdd_matrices(ntxants: int, nlayers: int) -> np.ndarray:
    """
    Large delay CDD matrices over one period, in row convention

    G(i) = (W(i) D(i) U)^T with U the normalized DFT matrix,
    D(i) = diag(exp(-j 2 pi i k / v)) and W(i) the fixed 2 antenna matrix
    or the 4 antenna codebook entries 12..15 cycled every v symbols.
    """
    v = nlayers
    U = linalg.dft(v, scale='sqrtn')
    k = np.arange(v)
    period = v if ntxants == 2 else 4 * v

    mats = []
    for i in range(period):
        D = np.diag(np.exp(-2j * np.pi * i * k / v))
        if ntxants == 2:
            W = precoding_codebook(2, 2, 0)
        else:
            W = precoding_codebook(4, v, 12 + (i // v) % 4)
        mats.append((W @ D @ U).T)
    return np.array(mats)


def effective_precoding_matrices(scheme) -> np.ndarray:
    """
    Per-symbol precoding matrices M(i), shape (period, NLayers, NTxAnts)

    Antenna symbol row i = layer symbol row i @ M(i mod period).
    Not defined for TxDiversity, which precodes real and imaginary parts.
    """
    name = scheme.name
    if name == 'Port0':
        return np.ones((1, 1, 1), dtype=np.complex128)
    if name == 'SpatialMux':
        W = precoding_codebook(scheme.NTxAnts, scheme.NLayers, scheme.PMI)
        return W.T[np.newaxis]
    if name == 'CDD':
        return cdd_matrices(scheme.NTxAnts, scheme.NLayers)
    if name in ('Port5', 'Port7-8', 'Port8', 'Port7-14'):
        return scheme.W[np.newaxis]
    raise ConfigurationError(f"No linear precoding matrices for scheme '{name}'")


def _apply(symbols: np.ndarray, mats: np.ndarray) -> np.ndarray:
    if len(mats) == 1:
        return symbols @ mats[0]
    sel = mats[np.arange(symbols.shape[0]) % len(mats)]
    return np.einsum('nl,nla->na', symbols, sel)


# ============================================================================
# TRANSMIT DIVERSITY (SFBC)
# ============================================================================

def _sfbc_matrix(ntxants: int) -> Tuple[np.ndarray, int]:
    """
    Complex matrix A acting on [Re x_0..x_{v-1}, Im x_0..x_{v-1}]

    Output order is antenna-fastest over the 2 (or 4) SFBC subcarriers,
    i.e. y_0(2i), y_1(2i), y_0(2i+1), y_1(2i+1) for 2 antennas.

    Returns:
        (A, subcarriers per layer symbol group)
    """
    if ntxants == 2:
        A = np.array([
            [1, 0, 1j, 0],
            [0, -1, 0, 1j],
            [0, 1, 0, 1j],
            [1, 0, -1j, 0],
        ]) * _S
        return A, 2

    A = np.zeros((16, 8), dtype=np.complex128)
    # (row = 4*subcarrier + antenna, layer, conjugate, sign)
    entries = [
        (0 * 4 + 0, 0, False, 1), (0 * 4 + 2, 1, True, -1),
        (1 * 4 + 0, 1, False, 1), (1 * 4 + 2, 0, True, 1),
        (2 * 4 + 1, 2, False, 1), (2 * 4 + 3, 3, True, -1),
        (3 * 4 + 1, 3, False, 1), (3 * 4 + 3, 2, True, 1),
    ]
    for row, layer, conj, sign in entries:
        A[row, layer] = sign * _S
        A[row, 4 + layer] = sign * (-1j if conj else 1j) * _S
    return A, 4


def _sfbc_precode(layers: np.ndarray, ntxants: int) -> np.ndarray:
    A, nsc = _sfbc_matrix(ntxants)
    r = np.hstack([layers.real, layers.imag])  # (M_layer, 2v)
    y = r @ A.T  # (M_layer, nsc * ntxants)
    return y.reshape(-1, ntxants)


def _sfbc_deprecode(rx: np.ndarray, ntxants: int) -> np.ndarray:
    A, nsc = _sfbc_matrix(ntxants)
    y = rx.reshape(-1, nsc * ntxants)
    A_real = np.vstack([A.real, A.imag])
    r = np.hstack([y.real, y.imag]) @ linalg.pinv(A_real).T
    v = ntxants
    return r[:, :v] + 1j * r[:, v:]


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTIONS
# ============================================================================

def lteDLPrecode(enb, chs, layers: np.ndarray) -> np.ndarray:
    """
    MATLAB lteDLPrecode equivalent - PDSCH precoding and beamforming

    Syntax:
        out = lteDLPrecode(enb, chs, in)

    Parameters:
        enb: Cell-wide settings (lte_config.CellConfig)
        chs: Channel settings (lte_config.ChannelConfig)
        layers: (symbols per layer)-by-NLayers complex matrix

    Returns:
        (symbols per antenna)-by-NTxAnts complex matrix. For TxDiversity
        the symbols per antenna are 2 (or 4) times the symbols per layer.
    """
    scheme = chs.TxScheme
    layers = np.asarray(layers, dtype=np.complex128)
    if layers.ndim == 1:
        layers = layers.reshape(-1, 1)
    if layers.shape[1] != scheme.NLayers:
        raise ConfigurationError(
            f"Expected {scheme.NLayers} layer column(s), got {layers.shape[1]}")

    if scheme.name == 'TxDiversity':
        return _sfbc_precode(layers, scheme.NTxAnts)
    return _apply(layers, effective_precoding_matrices(scheme))


def lteDLDeprecode(enb, chs, rx: np.ndarray) -> np.ndarray:
    """
    MATLAB lteDLDeprecode equivalent - pseudo-inverse based deprecoding

    Syntax:
        out = lteDLDeprecode(enb, chs, in)

    Parameters:
        enb: Cell-wide settings (lte_config.CellConfig)
        chs: Channel settings (lte_config.ChannelConfig)
        rx: (symbols per antenna)-by-NTxAnts received matrix

    Returns:
        (symbols per layer)-by-NLayers matrix. Exact only when the effective
        precoding matrix has full row rank and no noise was added.
    """
    scheme = chs.TxScheme
    rx = np.asarray(rx, dtype=np.complex128)
    if rx.ndim == 1:
        rx = rx.reshape(-1, 1)
    if rx.shape[1] != scheme.NTxAnts:
        raise ConfigurationError(
            f"Expected {scheme.NTxAnts} antenna column(s), got {rx.shape[1]}")

    if scheme.name == 'TxDiversity':
        nsc = 2 if scheme.NTxAnts == 2 else 4
        if rx.shape[0] % nsc != 0:
            raise ConfigurationError(
                f"TxDiversity symbols per antenna must be a multiple of {nsc}, got {rx.shape[0]}")
        return _sfbc_deprecode(rx, scheme.NTxAnts)

    mats = effective_precoding_matrices(scheme)
    return _apply(rx, np.array([linalg.pinv(m) for m in mats]))


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import CellConfig, ChannelConfig, SpatialMux, TxDiversity, CDD

    print("=" * 70)
    print("LTE DL Precoding - MATLAB lteDLPrecode/lteDLDeprecode Equivalent")
    print("=" * 70)
    print()

    rng = np.random.default_rng(3)
    enb = CellConfig(CellRefP=4)
    for scheme in [SpatialMux(2, 4, 5), CDD(3, 4), TxDiversity(4)]:
        chs = ChannelConfig(TxScheme=scheme)
        x = rng.standard_normal((12, scheme.NLayers)) + 1j * rng.standard_normal((12, scheme.NLayers))
        y = lteDLPrecode(enb, chs, x)
        err = np.max(np.abs(lteDLDeprecode(enb, chs, y) - x))
        print(f"{scheme.name:>12}: {x.shape} -> {y.shape}, max deprecoding error {err:.2e}")
