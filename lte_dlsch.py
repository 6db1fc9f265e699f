"""
LTE DL-SCH Transport Channel Processing - MATLAB-Compatible Implementation
Python equivalent of MATLAB lteDLSCH / lteDLSCHDecode

Encoding (per codeword):
    CRC24A attach -> code block segmentation (+CRC24B) -> turbo encoding
    -> rate matching and code block concatenation

Decoding (per codeword):
    rate recovery (+HARQ soft combining) -> turbo decoding
    -> code block desegmentation (CRC24B check) -> CRC24A check

CRC failures are returned as flags and never raise. A turbo decoder that
did not converge issues a ConvergenceWarning; the decoded bits are still
returned.

Based on 3GPP TS 36.212 Section 5.3.2
"""

import logging
import warnings
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from code_block_desegment import lteCodeBlockDesegment
from code_block_segment import lteCodeBlockSegment
from crc_encode import lteCRCDecode, lteCRCEncode
from lte_config import CellConfig, ChannelConfig, CodewordConfig, validate_configuration
from lte_errors import ConfigurationError, ConvergenceWarning
from rate_match_turbo import lteRateMatchTurbo
from rate_recover_turbo import SoftBuffer, lteRateRecoverTurbo
from turbo_decode import lteTurboDecode
from turbo_encode import lteTurboEncode

logger = logging.getLogger(__name__)


@dataclass
class CodewordDecodeResult:
    """Decoding outcome of one DL-SCH codeword"""
    trblk: np.ndarray
    crc_error: bool
    seg_crc_error: np.ndarray
    converged: List[bool]
    soft_buffer: SoftBuffer


@dataclass
class DLSCHDecodeResult:
    """Decoded transport blocks and per-codeword status (MATLAB lteDLSCHDecode outputs)"""
    codewords: List[CodewordDecodeResult] = field(default_factory=list)

    @property
    def trblks(self) -> List[np.ndarray]:
        return [cw.trblk for cw in self.codewords]

    @property
    def crc_error(self) -> List[bool]:
        return [cw.crc_error for cw in self.codewords]

    @property
    def seg_crc_error(self) -> List[np.ndarray]:
        return [cw.seg_crc_error for cw in self.codewords]

    @property
    def soft_buffers(self) -> List[SoftBuffer]:
        return [cw.soft_buffer for cw in self.codewords]


def dlsch_encode_codeword(trblk, outlen: int, cw: CodewordConfig) -> np.ndarray:
    """Transport block to rate matched codeword of exactly outlen bits"""
    crccoded = lteCRCEncode(trblk, '24A')
    blksegmented = lteCodeBlockSegment(crccoded)
    chencoded = lteTurboEncode(blksegmented)
    codeword = lteRateMatchTurbo(chencoded, outlen, cw.RV, cw)
    logger.debug("DL-SCH encoded %d bits into %d code block(s), %d codeword bits",
                 len(trblk), len(blksegmented), len(codeword))
    return codeword


def dlsch_decode_codeword(softbits, trblklen: int, cw: CodewordConfig,
                          nturbodecits: int = 5,
                          soft_buffer: Optional[SoftBuffer] = None) -> CodewordDecodeResult:
    """
    Soft codeword to transport block

    soft_buffer is combined with and then replaced by the received soft
    information; a new empty SoftBuffer is created when none is given.
    """
    if soft_buffer is None:
        soft_buffer = SoftBuffer()

    raterecovered = lteRateRecoverTurbo(softbits, trblklen, cw.RV, cw, soft_buffer)
    turbodecoded, converged = lteTurboDecode(raterecovered, nturbodecits)
    blkdesegmented, seg_err = lteCodeBlockDesegment(turbodecoded, trblklen + 24)
    trblk, err = lteCRCDecode(blkdesegmented, '24A')

    crc_error = bool(err != 0)
    if not all(converged):
        warnings.warn(
            f"Turbo decoding did not converge for code block(s) "
            f"{[r for r, ok in enumerate(converged) if not ok]} after {nturbodecits} iterations",
            ConvergenceWarning)
    if crc_error:
        logger.info("Transport block CRC failed (%d bits, RV=%d, code block CRC errors %s)",
                    trblklen, cw.RV, seg_err.tolist())

    return CodewordDecodeResult(trblk=trblk, crc_error=crc_error, seg_crc_error=seg_err,
                                converged=list(converged), soft_buffer=soft_buffer)


def per_codeword(values, ncodewords: int, what: str, vectors: bool = False) -> list:
    """Normalize a single value (or vector) or a per-codeword sequence to a list"""
    if vectors:
        single = (isinstance(values, np.ndarray) and values.ndim == 1) or \
            (isinstance(values, (list, tuple)) and len(values) > 0 and np.isscalar(values[0]))
    else:
        single = np.isscalar(values)
    values = [values] if single else list(values)
    if len(values) != ncodewords:
        raise ConfigurationError(
            f"Expected one {what} per codeword ({ncodewords}), got {len(values)}")
    return values


def soft_buffers_per_codeword(soft_buffers, ncodewords: int) -> List[SoftBuffer]:
    """One distinct SoftBuffer per codeword, new empty buffers when none are given"""
    if soft_buffers is None:
        return [SoftBuffer() for _ in range(ncodewords)]
    if isinstance(soft_buffers, SoftBuffer):
        soft_buffers = [soft_buffers]
    soft_buffers = per_codeword(soft_buffers, ncodewords, 'soft buffer')
    if len({id(b) for b in soft_buffers}) != len(soft_buffers):
        raise ConfigurationError("Each codeword needs its own SoftBuffer, got the same buffer twice")
    return soft_buffers


# ============================================================================
# MATLAB-COMPATIBLE WRAPPER FUNCTIONS
# ============================================================================

def lteDLSCH(enb: CellConfig, chs: ChannelConfig, outlen: Union[int, Sequence[int]],
             trblkin) -> List[np.ndarray]:
    """
    MATLAB lteDLSCH equivalent - DL-SCH transport channel encoding

    Syntax:
        cws = lteDLSCH(enb, chs, outlen, trblkin)

    Parameters:
        enb: Cell-wide settings
        chs: Channel settings
        outlen: Codeword bit capacity G per codeword
        trblkin: Transport block (one codeword) or list of transport blocks

    Returns:
        List of int8 codewords, codeword n exactly outlen[n] bits
    """
    validate_configuration(enb, chs)
    trblks = per_codeword(trblkin, chs.NCodewords, 'transport block', vectors=True)
    outlens = per_codeword(outlen, chs.NCodewords, 'codeword length')

    return [dlsch_encode_codeword(np.asarray(trblk), int(G), chs.codeword(enb, n))
            for n, (trblk, G) in enumerate(zip(trblks, outlens))]


def lteDLSCHDecode(enb: CellConfig, chs: ChannelConfig, trblklen: Union[int, Sequence[int]],
                   softbits, soft_buffers: Optional[Sequence[SoftBuffer]] = None) -> DLSCHDecodeResult:
    """
    MATLAB lteDLSCHDecode equivalent - DL-SCH transport channel decoding

    Syntax:
        result = lteDLSCHDecode(enb, chs, trblklen, softbits)
        result = lteDLSCHDecode(enb, chs, trblklen, softbits, soft_buffers)

    Parameters:
        enb: Cell-wide settings
        chs: Channel settings (RV and NTurboDecIts are taken from here)
        trblklen: Transport block length(s) before CRC
        softbits: Soft codeword(s), LLRs with positive = bit 0
        soft_buffers: Optional per-codeword SoftBuffer for HARQ combining,
                      updated in place

    Returns:
        DLSCHDecodeResult with transport blocks, crc_error flags, code block
        CRC errors, convergence flags and the soft buffers
    """
    validate_configuration(enb, chs)
    n = chs.NCodewords
    softbits = per_codeword(softbits, n, 'soft codeword', vectors=True)
    trblklens = per_codeword(trblklen, n, 'transport block length')
    soft_buffers = soft_buffers_per_codeword(soft_buffers, n)

    result = DLSCHDecodeResult()
    for q in range(n):
        result.codewords.append(dlsch_decode_codeword(
            softbits[q], int(trblklens[q]), chs.codeword(enb, q),
            chs.NTurboDecIts, soft_buffers[q]))
    return result


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import SpatialMux

    logging.basicConfig(level=logging.DEBUG)

    print("=" * 70)
    print("LTE DL-SCH - MATLAB lteDLSCH/lteDLSCHDecode Equivalent")
    print("=" * 70)
    print()

    enb = CellConfig(CellRefP=2)
    chs = ChannelConfig(TxScheme=SpatialMux(NLayers=2, NTxAnts=2),
                        Modulation=('16QAM', '16QAM'), RV=(0, 0), NSoftbits=1237248)
    rng = np.random.default_rng(0)
    trblks = [rng.integers(0, 2, 8760).astype(np.int8) for _ in range(2)]
    cws = lteDLSCH(enb, chs, [14400, 14400], trblks)
    result = lteDLSCHDecode(enb, chs, [8760, 8760], [1.0 - 2.0 * cw for cw in cws])
    print(f"crc_error = {result.crc_error}")
