# ----------------------------------------------------------------------
#  LTE Symbol Modulation and Demodulation
#  MATLAB-Compatible Implementation per 3GPP TS 36.211
# ----------------------------------------------------------------------
"""
LTE Symbol Modulation/Demodulation Module

This module implements 3GPP TS 36.211 compliant PDSCH modulation schemes:
- QPSK, 16QAM, 64QAM, 256QAM

Functions:
    lteSymbolModulate: Modulate bits to complex symbols
    lteSymbolDemodulate: Demodulate symbols to bits (hard/soft decision)

Soft decisions are max-log LLRs with positive values meaning bit 0, the
convention used by the descrambler and turbo decoder.

References:
    [1] 3GPP TS 36.211, Section 7.1
"""

import numpy as np
from typing import Union, List

from lte_errors import ConfigurationError


# Bits per symbol (Qm) for each PDSCH modulation scheme
MODULATION_ORDERS = {
    'QPSK': 2,
    '16QAM': 4,
    '64QAM': 6,
    '256QAM': 8,
}


class LTEModulator:
    """MATLAB Compatible LTE Modulation/Demodulation System

    Implements 3GPP TS 36.211 compliant modulation schemes with
    proper constellation normalization.

    Attributes:
        modulation_schemes: Dictionary mapping scheme names to bits per symbol
        norm_factors: Normalization factors for each modulation scheme
        constellations: Pre-computed constellation points for each scheme
    """

    def __init__(self):
        self.modulation_schemes = dict(MODULATION_ORDERS)
        self.norm_factors = {
            'QPSK': 1.0 / np.sqrt(2),
            '16QAM': 1.0 / np.sqrt(10),
            '64QAM': 1.0 / np.sqrt(42),
            '256QAM': 1.0 / np.sqrt(170),
        }
        self.constellations = {
            mod: self._table_qam(bps, self.norm_factors[mod])
            for mod, bps in self.modulation_schemes.items()
        }
        self.bit_levels = {
            mod: self._bit_levels(self.constellations[mod], bps)
            for mod, bps in self.modulation_schemes.items()
        }

    @staticmethod
    def _table_qam(bps: int, norm: float) -> np.ndarray:
        """
        Gray-coded square QAM of TS 36.211 Tables 7.1.2-1 to 7.1.5-1

        Even bits b0, b2, ... select the I level and odd bits b1, b3, ...
        the Q level, e.g. for 64QAM:
            I = (1-2b0) * (4 - (1-2b2) * (2 - (1-2b4)))
        Constellation index is the bit pattern read MSB (b0) first.
        """
        idx = np.arange(2 ** bps)
        bits = (idx[:, None] >> (bps - 1 - np.arange(bps))[None, :]) & 1
        half = bps // 2

        def pam(dim_bits):
            level = np.zeros(len(dim_bits), dtype=np.float64)
            for j in range(half - 1, -1, -1):
                level = (1 - 2 * dim_bits[:, j]) * (2 ** (half - 1 - j) - level)
            return level

        I = pam(bits[:, 0::2])
        Q = pam(bits[:, 1::2])
        return (I + 1j * Q) * norm

    @staticmethod
    def _bit_levels(constellation: np.ndarray, bps: int):
        """Per bit position, the I or Q levels carrying bit 0 and bit 1"""
        idx = np.arange(len(constellation))
        levels = []
        for b in range(bps):
            dim = constellation.real if b % 2 == 0 else constellation.imag
            bit = (idx >> (bps - 1 - b)) & 1
            levels.append((np.unique(dim[bit == 0]), np.unique(dim[bit == 1])))
        return levels

    def check_modulation(self, mod: str) -> int:
        if mod not in self.modulation_schemes:
            raise ConfigurationError(
                f"Modulation ({mod}) must be one of ({', '.join(self.modulation_schemes)}).")
        return self.modulation_schemes[mod]

    def modulate(self, bits: np.ndarray, mod: str) -> np.ndarray:
        bps = self.check_modulation(mod)
        n_bits = len(bits)
        if n_bits % bps != 0:
            raise ConfigurationError(
                f"Input length ({n_bits}) must be a multiple of the number of bits per symbol ({bps}).")
        weights = 1 << np.arange(bps - 1, -1, -1)
        indices = bits.reshape(-1, bps).astype(np.int64) @ weights
        return self.constellations[mod][indices]

    def demodulate_soft(self, symbols: np.ndarray, mod: str,
                        noise_var: float = 1.0) -> np.ndarray:
        """
        Exact max-log LLR per bit, computed on the I or Q dimension alone

        LLR = (min |r - l1|^2 - min |r - l0|^2) / noise_var
        """
        bps = self.check_modulation(mod)
        out = np.zeros(len(symbols) * bps, dtype=np.float64)
        for b, (lev0, lev1) in enumerate(self.bit_levels[mod]):
            r = symbols.real if b % 2 == 0 else symbols.imag
            d0 = np.min((r[:, None] - lev0[None, :]) ** 2, axis=1)
            d1 = np.min((r[:, None] - lev1[None, :]) ** 2, axis=1)
            out[b::bps] = (d1 - d0) / noise_var
        return out


# Global modulator instance for convenience
_modulator = LTEModulator()


def lteSymbolModulate(in_bits: Union[List, np.ndarray], mod: str) -> np.ndarray:
    """
    lteSymbolModulate - Symbol modulation per 3GPP TS 36.211

    OUT = lteSymbolModulate(IN, MOD) maps the bit values in vector IN to
    complex modulation symbols with the modulation scheme specified in MOD.

    Parameters
    ----------
    in_bits : array_like
        Input bits, each 0 or 1. Length must be a multiple of the
        bits per symbol: 2 (QPSK), 4 (16QAM), 6 (64QAM) or 8 (256QAM)
    mod : str
        Modulation scheme: 'QPSK', '16QAM', '64QAM', '256QAM'

    Returns
    -------
    out : ndarray
        Complex modulated symbols (complex128)

    Raises
    ------
    ConfigurationError
        Unknown scheme, non-binary input or a length that is not a
        multiple of the bits per symbol

    Examples
    --------
    >>> np.round(lteSymbolModulate([0, 1, 1, 0], 'QPSK') * np.sqrt(2))
    array([ 1.-1.j, -1.+1.j])
    """
    in_bits = np.asarray(in_bits)
    if in_bits.ndim == 2 and in_bits.shape[1] == 1:
        in_bits = in_bits[:, 0]
    elif in_bits.ndim > 1:
        raise ConfigurationError("The input must be a vector and not a matrix.")

    if not np.all((in_bits == 0) | (in_bits == 1)):
        raise ConfigurationError("Input bits must be 0 or 1")

    if len(in_bits) == 0:
        _modulator.check_modulation(mod)
        return np.zeros(0, dtype=np.complex128)

    return _modulator.modulate(in_bits, mod)


def lteSymbolDemodulate(in_symbols: Union[List, np.ndarray], mod: str,
                        dec: str = 'Soft', noise_var: float = 1.0) -> np.ndarray:
    """
    lteSymbolDemodulate - Demodulation and symbol to bit conversion

    OUT = lteSymbolDemodulate(IN, MOD) returns a vector containing soft bits
    resulting from constellation demodulation of complex values in vector IN.

    OUT = lteSymbolDemodulate(IN, MOD, DEC) allows the decision mode DEC to be
    specified, one of ('Hard', 'Soft'). Default is 'Soft'.

    Parameters
    ----------
    in_symbols : array_like
        Complex symbols to demodulate
    mod : str
        Modulation format: 'QPSK', '16QAM', '64QAM', '256QAM'
    dec : str, optional
        Decision mode: 'Hard' or 'Soft' (default: 'Soft')
    noise_var : float, optional
        Noise variance scaling the soft values (default: 1.0)

    Returns
    -------
    out : ndarray
        - Hard decision: bits as 0 or 1 (int8)
        - Soft decision: LLR values (float64), positive means bit 0

    Examples
    --------
    >>> lteSymbolDemodulate([0.7 - 0.7j, -0.7 + 0.7j], 'QPSK', 'Hard').tolist()
    [0, 1, 1, 0]
    """
    in_symbols = np.asarray(in_symbols, dtype=np.complex128)
    if in_symbols.ndim == 2:
        in_symbols = in_symbols.flatten()
    elif in_symbols.ndim > 2:
        raise ConfigurationError("Input must be a vector (1D or column vector)")

    if dec not in ('Hard', 'Soft'):
        raise ConfigurationError(f"Decision mode must be 'Hard' or 'Soft', got '{dec}'")
    if noise_var <= 0:
        raise ConfigurationError(f"Noise variance must be positive, got {noise_var}")

    llr = _modulator.demodulate_soft(in_symbols, mod, noise_var)
    if dec == 'Hard':
        return (llr < 0).astype(np.int8)
    return llr


# ----------------------------------------------------------------------
#  Test Function
# ----------------------------------------------------------------------

if __name__ == "__main__":
    print("LTE Modulation/Demodulation Module")
    print("=" * 60)

    rng = np.random.default_rng(0)
    for mod, bps in MODULATION_ORDERS.items():
        bits = rng.integers(0, 2, bps * 100)
        symbols = lteSymbolModulate(bits, mod)
        power = np.mean(np.abs(_modulator.constellations[mod]) ** 2)
        demod_bits = lteSymbolDemodulate(symbols, mod, 'Hard')
        errors = int(np.sum(demod_bits != bits))
        print(f"{mod:>8}: {len(bits)} bits → {len(symbols)} symbols, "
              f"mean power {power:.3f}, {errors} errors")

    print("\n" + "=" * 60)
    print("AWGN Channel Test (16QAM at 10 dB SNR)")
    bits = rng.integers(0, 2, 4000)
    symbols = lteSymbolModulate(bits, '16QAM')
    noise_var = 10 ** (-10 / 10)
    noise = np.sqrt(noise_var / 2) * (rng.standard_normal(len(symbols))
                                      + 1j * rng.standard_normal(len(symbols)))
    llr = lteSymbolDemodulate(symbols + noise, '16QAM', noise_var=noise_var)
    print(f"BER = {np.mean((llr < 0) != bits):.6f}")
