from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


# Game phases
class GamePhase(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class TribeName(str, Enum):
    MONKES = "monkes"
    GECKOS = "geckos"
    DEGODS = "degods"
    CETS = "cets"
    GREGS = "gregs"
    DRAGONZ = "dragonz"


# Map
class TerrainType(str, Enum):
    GRASSLAND = "grassland"
    PLAINS = "plains"
    FOREST = "forest"
    HILLS = "hills"
    MOUNTAIN = "mountain"
    WATER = "water"
    DESERT = "desert"
    JUNGLE = "jungle"
    MARSH = "marsh"


class TileFeature(str, Enum):
    RIVER = "river"
    OASIS = "oasis"


class ResourceCategory(str, Enum):
    STRATEGIC = "strategic"
    LUXURY = "luxury"
    BONUS = "bonus"


class DiplomaticStance(str, Enum):
    WAR = "war"
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"
    ALLIED = "allied"


class ProductionType(str, Enum):
    UNIT = "unit"
    BUILDING = "building"
    WONDER = "wonder"


class TradeRouteStatus(str, Enum):
    FORMING = "forming"
    ACTIVE = "active"
    BROKEN = "broken"


class UnitRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Yields(BaseModel):
    """Fixed-shape vector of the five resource channels."""

    gold: int = 0
    research: int = 0
    culture: int = 0
    production: int = 0
    growth: int = 0


class HexCoord(BaseModel):
    """Axial hex coordinate."""

    q: int
    r: int

    @property
    def key(self) -> str:
        return f"{self.q},{self.r}"


class Resource(BaseModel):
    type: str
    category: ResourceCategory
    revealed: bool = False
    improved: bool = False


class Tile(BaseModel):
    coord: HexCoord
    terrain: TerrainType
    feature: TileFeature | None = None
    resource: Resource | None = None
    owner: str | None = None
    improvement: str | None = None


class HexMap(BaseModel):
    width: int
    height: int
    tiles: dict[str, Tile]  # Keyed by "q,r"


# Entities
class Unit(BaseModel):
    id: str
    type: str
    owner: str
    position: HexCoord
    health: int
    max_health: int
    movement_remaining: int
    max_movement: int
    combat_strength: int = 0
    ranged_strength: int = 0
    settlement_strength: int = 0
    experience: int = 0
    level: int = 1
    promotions: list[str] = []
    rarity: UnitRarity = UnitRarity.COMMON
    has_acted: bool = False
    build_charges: int = 0
    great_person_kind: str | None = None


class ProductionItem(BaseModel):
    type: ProductionType
    id: str
    cost: int = Field(..., gt=0)
    progress: int = Field(0, ge=0)


class MilestoneChoice(BaseModel):
    level: int
    choice: Literal["a", "b"]


class Settlement(BaseModel):
    id: str
    name: str
    owner: str
    position: HexCoord
    population: int = Field(1, ge=1)
    level: int = Field(1, ge=1)
    population_progress: int = 0
    population_threshold: int
    health: int
    max_health: int
    culture_accumulated: int = 0
    buildings: list[str] = []
    production_queue: list[ProductionItem] = []
    current_production: int = Field(0, ge=0)  # Overflow carried into the next turn
    milestones_chosen: list[MilestoneChoice] = []
    is_capital: bool = False
    founded_turn: int = 0


class TradeRoute(BaseModel):
    id: str
    origin: str
    destination: str
    owner_tribe: str
    target_tribe: str
    gold_per_turn: int = Field(..., ge=1)
    active: bool = False
    turns_until_active: int = Field(0, ge=0)

    @property
    def status(self) -> TradeRouteStatus:
        if self.active:
            return TradeRouteStatus.ACTIVE
        if self.turns_until_active > 0:
            return TradeRouteStatus.FORMING
        return TradeRouteStatus.BROKEN


class BuiltWonder(BaseModel):
    id: str
    owner: str
    settlement_id: str
    turn: int


# Player sub-state
class GreatPeopleAccumulator(BaseModel):
    """Counters read by the great-person spawn rules."""

    gold: int = 0
    research: int = 0
    culture: int = 0
    combat_xp: int = 0
    trade_routes: int = 0
    buildings_built: int = 0
    wonders_built: int = 0


class GoldenAgeState(BaseModel):
    active: bool = False
    turns_remaining: int = 0
    effect: str | None = None  # e.g. "gold_20", "production_30"
    trigger: str | None = None
    triggers_used: list[str] = []  # Each trigger fires once per game
    recent_tech_turns: list[int] = []


class PlayerPolicies(BaseModel):
    slots: int = 2
    pool: list[str] = []
    active: list[str] = []


class Player(BaseModel):
    tribe_id: str
    tribe_name: TribeName
    is_human: bool = True
    treasury: int = Field(0, ge=0)
    researched_techs: set[str] = set()
    current_research: str | None = None
    research_progress: int = 0
    unlocked_cultures: set[str] = set()
    current_culture: str | None = None
    culture_progress: int = 0
    policies: PlayerPolicies = PlayerPolicies()
    great_people: GreatPeopleAccumulator = GreatPeopleAccumulator()
    great_people_earned: list[str] = []
    golden_age: GoldenAgeState = GoldenAgeState()
    kill_count: int = 0
    eliminated: bool = False


# Diplomacy
class DiplomaticRelation(BaseModel):
    stance: DiplomaticStance = DiplomaticStance.NEUTRAL
    turns_at_current_stance: int = 0


class PeaceProposal(BaseModel):
    proposer: str
    target: str
    turn: int


class DiplomacyState(BaseModel):
    relations: dict[str, DiplomaticRelation] = {}  # Keyed by sorted tribe pair
    peace_proposals: list[PeaceProposal] = []
    peace_rejections: dict[str, int] = {}  # "proposer|target" -> turn rejected


class Sequences(BaseModel):
    """Monotonic allocators carried with the game so each game owns its ids."""

    next_entity_id: int = 1
    next_trade_route_id: int = 1
    settlement_names: dict[str, int] = {}  # owner -> next name index


# Game state for the presentation layer and turn flow
class GameState(BaseModel):
    """Canonical game snapshot.

    Every engine transition returns a new GameState built with model_copy;
    snapshots handed out earlier are never modified.
    """

    seed: int
    turn: int = 1
    max_turns: int
    phase: GamePhase = GamePhase.IN_PROGRESS
    current_player: str
    players: list[Player]
    map: HexMap
    units: dict[str, Unit] = {}
    settlements: dict[str, Settlement] = {}
    fog: dict[str, set[str]] = {}  # tribe -> revealed hex keys
    diplomacy: DiplomacyState = DiplomacyState()
    trade_routes: list[TradeRoute] = []
    wonders: list[BuiltWonder] = []
    sequences: Sequences = Sequences()
    winner: str | None = None
    event_seq: int = 0  # Next sequence number for events (monotonically increasing)


# Game setup
class PlayerSetup(BaseModel):
    tribe_id: str
    tribe_name: TribeName
    start_position: HexCoord
    is_human: bool = True


class GameSettings(BaseModel):
    seed: int
    players: list[PlayerSetup]
    max_turns: int | None = None
    starting_treasury: int | None = None
