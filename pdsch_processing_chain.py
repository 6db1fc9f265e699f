"""
PDSCH Processing Chain - transport block to antenna symbols and back

Encode:  DL-SCH (CRC, segmentation, turbo coding, rate matching) per
         codeword, then PDSCH (scrambling, modulation, layer mapping,
         precoding) across all codewords.
Decode:  PDSCH deprecoding, layer demapping, soft demodulation and
         descrambling, then DL-SCH decoding per codeword with optional
         HARQ soft combining.

The per-codeword DL-SCH sub-chains are independent and can run on a thread
pool (max_workers > 1). The numba turbo decoder kernel releases the GIL.
Layer mapping and precoding join all codewords.

Example (zero-noise channel):
    chain = PDSCHProcessingChain(CellConfig(CellRefP=4), ChannelConfig(
        TxScheme=SpatialMux(2, 4, 0), Modulation=('16QAM', '16QAM'), RV=(0, 0)))
    tx, cws = chain.encode(trblks, [24064, 24064])
    result = chain.decode(tx, [11448, 11448])
    result.crc_error  # [False, False]
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from lte_config import CellConfig, ChannelConfig, validate_configuration
from lte_dlsch import (DLSCHDecodeResult, dlsch_decode_codeword, dlsch_encode_codeword, per_codeword,
                       soft_buffers_per_codeword)
from lte_errors import ConfigurationError
from lte_pdsch import ltePDSCH, ltePDSCHDecode
from rate_recover_turbo import SoftBuffer

logger = logging.getLogger(__name__)


@dataclass
class PDSCHDecodeResult:
    """Transport channel outcome plus the intermediate soft values"""
    dlsch: DLSCHDecodeResult
    softbits: List[np.ndarray]
    symbols: List[np.ndarray]

    @property
    def trblks(self) -> List[np.ndarray]:
        return self.dlsch.trblks

    @property
    def crc_error(self) -> List[bool]:
        return self.dlsch.crc_error

    @property
    def seg_crc_error(self) -> List[np.ndarray]:
        return self.dlsch.seg_crc_error

    @property
    def converged(self) -> List[List[bool]]:
        return [cw.converged for cw in self.dlsch.codewords]

    @property
    def soft_buffers(self) -> List[SoftBuffer]:
        return self.dlsch.soft_buffers


class PDSCHProcessingChain:
    """
    Encode and decode chain for one cell and channel configuration

    The configuration is validated once at construction. Soft buffers are
    owned by the caller: pass the same SoftBuffer objects to successive
    decode() calls of one HARQ process to combine retransmissions, and
    reset() them when a new transport block starts.
    """

    def __init__(self, cell: CellConfig, channel: ChannelConfig, max_workers: int = 1):
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")
        validate_configuration(cell, channel)
        self.cell = cell
        self.channel = channel
        self.max_workers = max_workers
        self.codewords = [channel.codeword(cell, q) for q in range(channel.NCodewords)]

    def _map_codewords(self, func: Callable, *args) -> list:
        """Run func(q, ...) for every codeword, on a thread pool if configured"""
        n = self.channel.NCodewords
        if self.max_workers == 1 or n == 1:
            return [func(q, *(a[q] for a in args)) for q in range(n)]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, n)) as executor:
            futures = [executor.submit(func, q, *(a[q] for a in args)) for q in range(n)]
            return [f.result() for f in futures]

    def encode(self, trblks, outlens: Sequence[int]) -> Tuple[np.ndarray, List[np.ndarray]]:
        """
        Transport blocks to antenna symbols

        Parameters:
            trblks: One transport block per codeword
            outlens: Codeword bit capacity G per codeword

        Returns:
            (symbols per antenna)-by-NTxAnts matrix and the rate matched
            codewords
        """
        n = self.channel.NCodewords
        trblks = per_codeword(trblks, n, 'transport block', vectors=True)
        outlens = per_codeword(outlens, n, 'codeword length')

        def encode_one(q, trblk, G):
            return dlsch_encode_codeword(np.asarray(trblk), int(G), self.codewords[q])

        cws = self._map_codewords(encode_one, trblks, outlens)
        logger.debug("Encoded %d codeword(s) with %s", n, self.channel.TxScheme.name)
        return ltePDSCH(self.cell, self.channel, cws), cws

    def decode(self, rx: np.ndarray, trblklens: Sequence[int], noise_var: float = 1.0,
               soft_buffers: Optional[Sequence[SoftBuffer]] = None) -> PDSCHDecodeResult:
        """
        Received antenna symbols to transport blocks

        Parameters:
            rx: Received (symbols per antenna)-by-NTxAnts matrix, equalized
                for the propagation channel
            trblklens: Transport block length per codeword
            noise_var: Noise variance used for the soft demodulation
            soft_buffers: Optional SoftBuffer per codeword, updated in place

        Returns:
            PDSCHDecodeResult; CRC failures are flags, not exceptions
        """
        n = self.channel.NCodewords
        trblklens = per_codeword(trblklens, n, 'transport block length')
        soft_buffers = soft_buffers_per_codeword(soft_buffers, n)

        softbits, symbols = ltePDSCHDecode(self.cell, self.channel, rx, noise_var)

        def decode_one(q, bits, trblklen, buf):
            return dlsch_decode_codeword(bits, int(trblklen), self.codewords[q],
                                         self.channel.NTurboDecIts, buf)

        dlsch = DLSCHDecodeResult(self._map_codewords(decode_one, softbits, trblklens, soft_buffers))
        for q, cw in enumerate(dlsch.codewords):
            logger.info("Codeword %d: transport block of %d bits, CRC %s",
                        q, trblklens[q], "failed" if cw.crc_error else "passed")
        return PDSCHDecodeResult(dlsch=dlsch, softbits=softbits, symbols=symbols)


# ============================================================================
# USAGE EXAMPLES
# ============================================================================

if __name__ == "__main__":
    from lte_config import SpatialMux

    logging.basicConfig(level=logging.INFO)

    print("=" * 70)
    print("PDSCH Processing Chain - R.14 style, 2 codewords, SpatialMux 4 ports")
    print("=" * 70)
    print()

    enb = CellConfig(NDLRB=50, CellRefP=4, NCellID=0, CFI=2)
    pdsch = ChannelConfig(TxScheme=SpatialMux(NLayers=2, NTxAnts=4, PMI=0),
                          Modulation=('16QAM', '16QAM'), RV=(0, 0), RNTI=1,
                          NSoftbits=1237248)
    chain = PDSCHProcessingChain(enb, pdsch, max_workers=2)

    rng = np.random.default_rng(2024)
    trblks = [rng.integers(0, 2, 11448).astype(np.int8) for _ in range(2)]
    tx, cws = chain.encode(trblks, [24064, 24064])
    print(f"Codeword lengths {[len(cw) for cw in cws]}, antenna symbols {tx.shape}")

    noise_var = 0.05
    rx = tx + np.sqrt(noise_var / 2) * (rng.standard_normal(tx.shape)
                                        + 1j * rng.standard_normal(tx.shape))
    result = chain.decode(rx, [11448, 11448], noise_var=noise_var)
    print(f"crc_error = {result.crc_error}")
    print(f"Recovered: {[np.array_equal(a, b) for a, b in zip(result.trblks, trblks)]}")
