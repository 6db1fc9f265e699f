"""
LTE CRC Encode/Decode - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteCRCEncode / lteCRCDecode

MATLAB Compatibility:
- Negative input bit values (-1) are interpreted as logical 0 for CRC calculation
- Supports CRC types: '8', '16', '24A', '24B'
- XOR masking applied MSB-first
- Filler bits preserved in output
- Decoder accepts hard bits or soft values (positive LLR = bit 0)

Based on 3GPP TS 36.212 Section 5.1.1

Note: Code block segmentation is in separate module (code_block_segment.py)
"""

import numpy as np
from typing import Tuple

from lte_errors import ConfigurationError


class LTE_CRC:
    """
    LTE CRC Calculation, Attachment and Checking
    MATLAB-COMPATIBLE - Matches lteCRCEncode / lteCRCDecode
    """

    def __init__(self):
        # CRC Generator Polynomials (MSB first, length includes x^n term)

        # gCRC24A(D) = D^24 + D^23 + D^18 + D^17 + D^14 + D^11 + D^10 + D^7 + D^6 + D^5 + D^4 + D^3 + D + 1
        self.gCRC24A = [1, 1, 0, 0, 0, 0, 1, 1, 0, 0, 1, 0, 0, 1, 1, 0, 0, 1, 1, 1, 1, 1, 0, 1, 1]

        # gCRC24B(D) = D^24 + D^23 + D^6 + D^5 + D + 1
        self.gCRC24B = [1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 0, 0, 0, 1, 1]

        # gCRC16(D) = D^16 + D^12 + D^5 + 1
        self.gCRC16 = [1, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]

        # gCRC8(D) = D^8 + D^7 + D^4 + D^3 + D + 1
        self.gCRC8 = [1, 1, 0, 0, 1, 1, 0, 1, 1]

        self.polynomials = {
            '24A': self.gCRC24A,
            '24B': self.gCRC24B,
            '16': self.gCRC16,
            '8': self.gCRC8,
        }

    def generator(self, crc_type: str) -> Tuple[np.ndarray, int]:
        """
        Look up generator polynomial and CRC length for a CRC type

        Accepts '8', '16', '24A', '24B' with or without a 'CRC' prefix.
        """
        key = crc_type[3:] if crc_type.startswith('CRC') else crc_type
        if key not in self.polynomials:
            raise ConfigurationError(
                f"Unknown CRC type: {crc_type}. Valid types: '8', '16', '24A', '24B'")
        poly = np.array(self.polynomials[key], dtype=np.int8)
        return poly, len(poly) - 1

    def crc_calculate(self, input_bits, generator_poly, L):
        """
        Calculate CRC parity bits using polynomial division in GF(2)

        MATLAB lteCRCEncode behavior:
        "To support the correct processing of filler bits, negative input bit
        values are interpreted as logical 0 for the purposes of the CRC calculation
        (-1 is used in the LTE Toolbox to represent filler bits)."

        Parameters:
            input_bits: Input bit array (may contain -1 for filler bits)
            generator_poly: CRC generator polynomial (L+1 coefficients, MSB first)
            L: CRC length (8, 16, or 24)

        Returns:
            CRC parity bits (L bits)
        """
        input_bits = np.asarray(input_bits)

        # Convert -1 (NULL/filler) to 0 for CRC calculation
        input_for_crc = np.where(input_bits < 0, 0, input_bits).astype(np.int8)

        # Polynomial division in GF(2), one generator-length XOR per set bit
        poly = np.concatenate([input_for_crc, np.zeros(L, dtype=np.int8)])
        generator_poly = np.asarray(generator_poly, dtype=np.int8)

        for i in range(len(input_for_crc)):
            if poly[i]:
                poly[i:i + L + 1] ^= generator_poly

        return poly[len(poly) - L:].astype(np.int8)

    @staticmethod
    def mask_bits(mask: int, L: int) -> np.ndarray:
        """Mask value as L bits, MSB first"""
        return np.array([int(b) for b in format(mask, f'0{L}b')[-L:]], dtype=np.int8)

    def crc_attach(self, input_bits, crc_type='24A', mask=0):
        """
        Attach CRC to input bit sequence - MATLAB lteCRCEncode equivalent

        Parameters:
            input_bits: Input bit vector (may contain -1 for filler bits)
            crc_type: CRC polynomial type ('8', '16', '24A', '24B')
            mask: XOR mask value (typically RNTI), applied MSB-first

        Returns:
            Bit vector with CRC appended (input preserved + CRC bits), int8

        Examples:
            >>> crc = LTE_CRC()
            >>> len(crc.crc_attach(np.zeros(100, dtype=int), '24A'))
            124
            >>> int(crc.crc_attach(np.zeros(100, dtype=int), '24A', mask=1)[-1])
            1
        """
        input_bits = np.asarray(input_bits).astype(np.int8)
        generator_poly, L = self.generator(crc_type)

        parity_bits = self.crc_calculate(input_bits, generator_poly, L)

        # MATLAB: "The MASK value is applied to the CRC bits MSB first/LSB last"
        if mask != 0:
            parity_bits = parity_bits ^ self.mask_bits(mask, L)

        return np.concatenate([input_bits, parity_bits])

    def crc_syndrome(self, blkcrc, crc_type='24A', mask=0) -> Tuple[np.ndarray, int]:
        """
        Strip and verify the CRC of a hard or soft input block

        Returns:
            (payload bits as int8, XOR of received and recalculated CRC with
            the mask removed; 0 means the check passed)
        """
        generator_poly, L = self.generator(crc_type)
        blkcrc = np.asarray(blkcrc, dtype=np.float64)

        if len(blkcrc) < L:
            raise ConfigurationError(f"Input length {len(blkcrc)} too short for {crc_type} CRC")

        # Soft values (LLRs): positive means bit 0
        if np.any((blkcrc != 0) & (blkcrc != 1)):
            hard = (blkcrc < 0).astype(np.int8)
        else:
            hard = blkcrc.astype(np.int8)

        payload = hard[:len(hard) - L]
        received = hard[len(hard) - L:]
        calculated = self.crc_calculate(payload, generator_poly, L)

        weights = 1 << np.arange(L - 1, -1, -1, dtype=np.int64)
        diff = int(np.dot((received ^ calculated).astype(np.int64), weights))
        return payload, diff ^ mask

    def crc_check(self, blkcrc, crc_type='24A', mask=0) -> Tuple[np.ndarray, bool]:
        """
        Check CRC and return (payload, ok)

        A mismatch never raises: the payload is returned for inspection and
        ok is False.
        """
        payload, err = self.crc_syndrome(blkcrc, crc_type, mask)
        return payload, err == 0


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTIONS
# ============================================================================

_crc = LTE_CRC()


def lteCRCEncode(blk, poly, mask=0):
    """
    MATLAB lteCRCEncode equivalent - CRC encoding only

    Syntax:
        blkcrc = lteCRCEncode(blk, poly)
        blkcrc = lteCRCEncode(blk, poly, mask)

    Parameters:
        blk: Input bit vector
        poly: CRC polynomial ('8', '16', '24A', '24B')
        mask: XOR mask value (optional)

    Returns:
        blkcrc: Input with CRC appended

    Examples:
        >>> len(lteCRCEncode(np.zeros(100, dtype=int), '24A'))
        124
        >>> len(lteCRCEncode(np.array([-1, -1, 1, 0, 1]), '24A'))
        29
    """
    return _crc.crc_attach(blk, crc_type=poly, mask=mask)


def lteCRCDecode(blkcrc, poly, mask=0):
    """
    MATLAB lteCRCDecode equivalent - CRC checking and removal

    Syntax:
        [blk, err] = lteCRCDecode(blkcrc, poly)
        [blk, err] = lteCRCDecode(blkcrc, poly, mask)

    Parameters:
        blkcrc: Hard bits or soft values (positive = bit 0) with CRC appended
        poly: CRC polynomial ('8', '16', '24A', '24B')
        mask: XOR mask value (optional), removed from the error syndrome

    Returns:
        blk: Data bits without CRC (int8)
        err: XOR difference between received and calculated CRC (uint32)
             err == 0: CRC passed
             err != 0: CRC failed or was masked with a different value
    """
    blk, err = _crc.crc_syndrome(blkcrc, poly, mask)
    return blk, np.uint32(err)


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    print("=" * 70)
    print("LTE CRC Encode/Decode - MATLAB lteCRCEncode/lteCRCDecode Equivalent")
    print("=" * 70)
    print()

    input_data = np.array([1, 0, 1, 1, 0, 1, 0, 0], dtype=int)
    for poly in ['8', '16', '24A', '24B']:
        output = lteCRCEncode(input_data, poly)
        crc = output[len(input_data):]
        print(f"CRC-{poly:4}: {crc} ({len(crc)} bits)")
    print()

    print("CRC24A with mask=5 (simulating RNTI)")
    print("-" * 70)
    encoded = lteCRCEncode(np.zeros(100, dtype=int), '24A', mask=5)
    _, err_unmasked = lteCRCDecode(encoded, '24A')
    _, err_masked = lteCRCDecode(encoded, '24A', 5)
    print(f"err without mask: {err_unmasked}, err with mask: {err_masked}")
