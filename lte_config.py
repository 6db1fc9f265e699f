"""
LTE DL-SCH/PDSCH Configuration Model

Cell-wide settings (MATLAB 'enb' structure) and channel-specific settings
(MATLAB 'pdsch' structure) as immutable dataclasses.

The transmission scheme is a closed set of dataclasses, one per scheme,
each carrying only the parameters that scheme needs:

    Port0()                          Single antenna port 0
    TxDiversity(NTxAnts)             SFBC transmit diversity, 2 or 4 ports
    SpatialMux(NLayers, NTxAnts, PMI) Closed-loop codebook spatial multiplexing
    CDD(NLayers, NTxAnts)            Large delay cyclic delay diversity
    Beamforming(Port, NLayers, W)    UE-specific RS ports (Port5, Port7-8,
                                     Port8, Port7-14) with weight matrix W

Based on 3GPP TS 36.211 Section 6.3, TS 36.212 Section 5.3.2,
TS 36.213 Section 7 and TS 36.306 Table 4.1-1
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import numpy as np

from lte_errors import ConfigurationError
from lte_layer_mapping import codeword_layers
from lte_modulation import MODULATION_ORDERS


# Maximum number of DL HARQ processes (TS 36.213 Table 7-1), keyed by TDD config
TDD_MDLHARQ = {0: 4, 1: 7, 2: 10, 3: 9, 4: 12, 5: 15, 6: 6}

# Largest valid PMI per (NTxAnts, NLayers) for CRS-based spatial multiplexing
# (TS 36.211 Tables 6.3.4.2.3-1 and 6.3.4.2.3-2)
MAX_PMI = {
    (2, 1): 3, (2, 2): 2,
    (4, 1): 15, (4, 2): 15, (4, 3): 15, (4, 4): 15,
}


# ============================================================================
# CELL-WIDE SETTINGS
# ============================================================================

@dataclass(frozen=True)
class CellConfig:
    """Cell-wide settings (MATLAB enb structure)"""
    NDLRB: int = 50
    CellRefP: int = 1
    NCellID: int = 0
    CyclicPrefix: str = 'Normal'
    DuplexMode: str = 'FDD'
    TDDConfig: int = 1
    SSC: int = 4
    NSubframe: int = 0
    CFI: int = 2

    def __post_init__(self):
        if not 6 <= self.NDLRB <= 110:
            raise ConfigurationError(f"NDLRB must be within 6..110, got {self.NDLRB}")
        if self.CellRefP not in (1, 2, 4):
            raise ConfigurationError(f"CellRefP must be 1, 2 or 4, got {self.CellRefP}")
        if not 0 <= self.NCellID <= 503:
            raise ConfigurationError(f"NCellID must be within 0..503, got {self.NCellID}")
        if self.CyclicPrefix not in ('Normal', 'Extended'):
            raise ConfigurationError(f"CyclicPrefix must be 'Normal' or 'Extended', got '{self.CyclicPrefix}'")
        if self.DuplexMode not in ('FDD', 'TDD'):
            raise ConfigurationError(f"DuplexMode must be 'FDD' or 'TDD', got '{self.DuplexMode}'")
        if self.TDDConfig not in TDD_MDLHARQ:
            raise ConfigurationError(f"TDDConfig must be within 0..6, got {self.TDDConfig}")
        if not 0 <= self.SSC <= 9:
            raise ConfigurationError(f"SSC must be within 0..9, got {self.SSC}")
        if not 0 <= self.NSubframe <= 9:
            raise ConfigurationError(f"NSubframe must be within 0..9, got {self.NSubframe}")
        if self.CFI not in (1, 2, 3):
            raise ConfigurationError(f"CFI must be 1, 2 or 3, got {self.CFI}")

    @property
    def MDLHARQ(self) -> int:
        """Maximum number of downlink HARQ processes"""
        if self.DuplexMode == 'FDD':
            return 8
        return TDD_MDLHARQ[self.TDDConfig]


# ============================================================================
# TRANSMISSION SCHEMES
# ============================================================================

@dataclass(frozen=True)
class Port0:
    """Single antenna port (port 0)"""
    name = 'Port0'
    NLayers = 1
    NTxAnts = 1
    max_codewords = 1
    kmimo = 1


@dataclass(frozen=True)
class TxDiversity:
    """Transmit diversity (SFBC), one codeword on 2 or 4 layers/ports"""
    NTxAnts: int = 2

    name = 'TxDiversity'
    max_codewords = 1
    kmimo = 1

    def __post_init__(self):
        if self.NTxAnts not in (2, 4):
            raise ConfigurationError(
                f"TxDiversity requires 2 or 4 transmit antennas, got {self.NTxAnts}")

    @property
    def NLayers(self) -> int:
        return self.NTxAnts


@dataclass(frozen=True)
class SpatialMux:
    """Closed-loop spatial multiplexing with codebook precoding"""
    NLayers: int = 2
    NTxAnts: int = 2
    PMI: int = 0

    name = 'SpatialMux'
    max_codewords = 2
    kmimo = 2

    def __post_init__(self):
        if self.NTxAnts not in (2, 4):
            raise ConfigurationError(
                f"SpatialMux requires 2 or 4 transmit antennas, got {self.NTxAnts}")
        if not 1 <= self.NLayers <= self.NTxAnts:
            raise ConfigurationError(
                f"SpatialMux supports 1..{self.NTxAnts} layers on {self.NTxAnts} antennas, "
                f"got {self.NLayers}")
        max_pmi = MAX_PMI[(self.NTxAnts, self.NLayers)]
        if not 0 <= self.PMI <= max_pmi:
            raise ConfigurationError(
                f"PMI must be within 0..{max_pmi} for {self.NLayers} layer(s) on "
                f"{self.NTxAnts} antennas, got {self.PMI}")


@dataclass(frozen=True)
class CDD:
    """Large delay cyclic delay diversity (open-loop spatial multiplexing)"""
    NLayers: int = 2
    NTxAnts: int = 2

    name = 'CDD'
    max_codewords = 2
    kmimo = 2

    def __post_init__(self):
        if self.NTxAnts not in (2, 4):
            raise ConfigurationError(
                f"CDD requires 2 or 4 transmit antennas, got {self.NTxAnts}")
        if not 2 <= self.NLayers <= self.NTxAnts:
            raise ConfigurationError(
                f"CDD supports 2..{self.NTxAnts} layers on {self.NTxAnts} antennas, "
                f"got {self.NLayers}")


# Layer limits for the UE-specific reference signal ports
BEAMFORMING_LAYERS = {'Port5': (1, 1), 'Port8': (1, 1), 'Port7-8': (1, 2), 'Port7-14': (1, 8)}


@dataclass(frozen=True)
class Beamforming:
    """UE-specific beamforming on Port5, Port7-8, Port8 or Port7-14

    W is the NLayers-by-NTxAnts beamforming weight matrix applied after
    layer mapping (symbols are rows, so antenna symbols = layers @ W).
    """
    Port: str = 'Port7-8'
    NLayers: int = 1
    W: np.ndarray = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.Port not in BEAMFORMING_LAYERS:
            raise ConfigurationError(
                f"Beamforming port must be one of {list(BEAMFORMING_LAYERS)}, got '{self.Port}'")
        lo, hi = BEAMFORMING_LAYERS[self.Port]
        if not lo <= self.NLayers <= hi:
            raise ConfigurationError(
                f"{self.Port} supports {lo}..{hi} layer(s), got {self.NLayers}")
        if self.W is None:
            raise ConfigurationError(f"{self.Port} requires a beamforming weight matrix W")
        W = np.atleast_2d(np.asarray(self.W, dtype=np.complex128))
        if W.shape[0] != self.NLayers:
            raise ConfigurationError(
                f"W must have NLayers={self.NLayers} rows, got shape {W.shape}")
        if W.shape[1] < self.NLayers:
            raise ConfigurationError(
                f"W must have at least NLayers={self.NLayers} columns (antennas), got {W.shape[1]}")
        object.__setattr__(self, 'W', W)

    @property
    def name(self) -> str:
        return self.Port

    @property
    def NTxAnts(self) -> int:
        return self.W.shape[1]

    @property
    def max_codewords(self) -> int:
        return 1 if self.Port in ('Port5', 'Port8') else 2

    @property
    def kmimo(self) -> int:
        return 2 if self.Port in ('Port7-8', 'Port7-14') else 1


TxScheme = Union[Port0, TxDiversity, SpatialMux, CDD, Beamforming]


# ============================================================================
# CHANNEL-SPECIFIC SETTINGS
# ============================================================================

@dataclass(frozen=True)
class CodewordConfig:
    """Per-codeword view of the channel settings used by rate matching/recovery"""
    Modulation: str
    Qm: int
    NLayers: int
    RV: int
    NSoftbits: Optional[int]
    KMIMO: int
    MDLHARQ: int
    Diversity: bool = False
    # Layers of the whole transmission, used for the soft buffer category
    TotalLayers: int = 0

    @property
    def NL(self) -> int:
        """Layer factor of the per code block output length granularity"""
        return 2 if self.Diversity else self.NLayers


@dataclass(frozen=True)
class ChannelConfig:
    """Channel-specific settings (MATLAB pdsch structure)"""
    TxScheme: TxScheme = field(default_factory=Port0)
    Modulation: Tuple[str, ...] = ('QPSK',)
    RNTI: int = 1
    PRBSet: Tuple[int, ...] = ()
    RV: Tuple[int, ...] = (0,)
    NSoftbits: Optional[int] = None
    NTurboDecIts: int = 5

    def __post_init__(self):
        if not isinstance(self.TxScheme, (Port0, TxDiversity, SpatialMux, CDD, Beamforming)):
            raise ConfigurationError(
                f"TxScheme must be one of Port0, TxDiversity, SpatialMux, CDD or Beamforming, "
                f"got {self.TxScheme!r}")
        if isinstance(self.Modulation, str):
            object.__setattr__(self, 'Modulation', (self.Modulation,))
        else:
            object.__setattr__(self, 'Modulation', tuple(self.Modulation))
        if isinstance(self.RV, (int, np.integer)):
            object.__setattr__(self, 'RV', (int(self.RV),))
        else:
            object.__setattr__(self, 'RV', tuple(int(rv) for rv in self.RV))
        object.__setattr__(self, 'PRBSet', tuple(int(p) for p in self.PRBSet))

        if not 1 <= len(self.Modulation) <= 2:
            raise ConfigurationError(
                f"One or two codewords are supported, got {len(self.Modulation)} modulation schemes")
        for mod in self.Modulation:
            if mod not in MODULATION_ORDERS:
                raise ConfigurationError(
                    f"Modulation must be one of {list(MODULATION_ORDERS)}, got '{mod}'")
        if len(self.RV) != len(self.Modulation):
            raise ConfigurationError(
                f"RV must have one entry per codeword ({len(self.Modulation)}), got {len(self.RV)}")
        for rv in self.RV:
            if rv not in (0, 1, 2, 3):
                raise ConfigurationError(f"RV must be 0, 1, 2, or 3, got {rv}")
        if not 1 <= self.RNTI <= 65535:
            raise ConfigurationError(f"RNTI must be within 1..65535, got {self.RNTI}")
        if self.NSoftbits is not None and self.NSoftbits <= 0:
            raise ConfigurationError(f"NSoftbits must be positive, got {self.NSoftbits}")
        if not 1 <= self.NTurboDecIts <= 30:
            raise ConfigurationError(
                f"NTurboDecIts must be within 1..30, got {self.NTurboDecIts}")

    @property
    def NCodewords(self) -> int:
        return len(self.Modulation)

    @property
    def NLayers(self) -> int:
        return self.TxScheme.NLayers

    @property
    def NTxAnts(self) -> int:
        return self.TxScheme.NTxAnts

    def codeword_layers(self, n: int) -> int:
        """Number of layers codeword n is mapped to"""
        return codeword_layers(self.NLayers, self.NCodewords)[n]

    def codeword(self, cell: CellConfig, n: int) -> CodewordConfig:
        """Per-codeword parameters (MATLAB chs(n)) for rate matching/recovery"""
        if not 0 <= n < self.NCodewords:
            raise ConfigurationError(
                f"Codeword index must be within 0..{self.NCodewords - 1}, got {n}")
        mod = self.Modulation[n]
        return CodewordConfig(
            Modulation=mod,
            Qm=MODULATION_ORDERS[mod],
            NLayers=self.codeword_layers(n),
            RV=self.RV[n],
            NSoftbits=self.NSoftbits,
            KMIMO=self.TxScheme.kmimo,
            MDLHARQ=cell.MDLHARQ,
            Diversity=isinstance(self.TxScheme, TxDiversity),
            TotalLayers=self.NLayers,
        )


def validate_configuration(cell: CellConfig, channel: ChannelConfig) -> None:
    """
    Cross-check cell-wide and channel settings before any stage executes

    Raises:
        ConfigurationError: for any inconsistent combination
    """
    scheme = channel.TxScheme
    if channel.NCodewords > scheme.max_codewords:
        raise ConfigurationError(
            f"{scheme.name} supports at most {scheme.max_codewords} codeword(s), "
            f"got {channel.NCodewords}")
    if channel.NLayers < channel.NCodewords:
        raise ConfigurationError(
            f"{channel.NCodewords} codewords need at least as many layers, got {channel.NLayers}")
    if isinstance(scheme, (TxDiversity, SpatialMux, CDD)) and scheme.NTxAnts != cell.CellRefP:
        raise ConfigurationError(
            f"{scheme.name} transmits on the cell-specific RS ports: NTxAnts ({scheme.NTxAnts}) "
            f"must equal CellRefP ({cell.CellRefP})")
    for prb in channel.PRBSet:
        if not 0 <= prb < cell.NDLRB:
            raise ConfigurationError(
                f"PRBSet entry {prb} outside 0..{cell.NDLRB - 1}")
