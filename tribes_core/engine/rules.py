"""Static rule tables: tribes, terrain, units, buildings, wonders, techs, cultures.

These tables are read-only definitions consulted by the engine. Game state
only stores identifiers that resolve against them.
"""

from pydantic import BaseModel

from tribes_core.schemas.game_state import (
    GoldenAgeState,
    ResourceCategory,
    TerrainType,
    TileFeature,
    TribeName,
    UnitRarity,
    Yields,
)

# =============================================================================
# Tribes
# =============================================================================


class TribeBonuses(BaseModel):
    research_percent: float = 0.0
    culture_percent: float = 0.0
    extra_trade_route_capacity: int = 0
    melee_unit_production_percent: float = 0.0
    ranged_unit_production_percent: float = 0.0
    gold_building_percent: float = 0.0
    culture_building_percent: float = 0.0
    production_building_percent: float = 0.0


class TribeDefinition(BaseModel):
    name: TribeName
    display_name: str
    unique_unit: str
    settlement_names: list[str]
    bonuses: TribeBonuses = TribeBonuses()


TRIBE_DEFINITIONS: dict[TribeName, TribeDefinition] = {
    TribeName.MONKES: TribeDefinition(
        name=TribeName.MONKES,
        display_name="Monkes",
        unique_unit="banana_slinger",
        settlement_names=["Monkee Dao", "Skelley Central", "Sombrero Junction", "Alien City", "Nom Town"],
        bonuses=TribeBonuses(culture_percent=0.05, extra_trade_route_capacity=1),
    ),
    TribeName.GECKOS: TribeDefinition(
        name=TribeName.GECKOS,
        display_name="Geckos",
        unique_unit="neon_geck",
        settlement_names=["Enigma City", "Targari", "Martu", "Barda", "Alura"],
        bonuses=TribeBonuses(research_percent=0.05, ranged_unit_production_percent=0.10),
    ),
    TribeName.DEGODS: TribeDefinition(
        name=TribeName.DEGODS,
        display_name="DeGods",
        unique_unit="deadgod",
        settlement_names=["Dust City", "Y00t Town", "Killer 3 Central", "Supernova", "DeHeaven"],
        bonuses=TribeBonuses(melee_unit_production_percent=0.10, gold_building_percent=0.10),
    ),
    TribeName.CETS: TribeDefinition(
        name=TribeName.CETS,
        display_name="Cets",
        unique_unit="stuckers",
        settlement_names=["Peblo City", "Buddha Town", "Enlightenment", "Illuminati", "313 City"],
        bonuses=TribeBonuses(culture_building_percent=0.10, production_building_percent=0.10),
    ),
    TribeName.GREGS: TribeDefinition(
        name=TribeName.GREGS,
        display_name="Foxes",
        unique_unit="warrior",
        settlement_names=["Greg Town", "Gregville", "New Greg", "Gregopolis", "Gregland"],
    ),
    TribeName.DRAGONZ: TribeDefinition(
        name=TribeName.DRAGONZ,
        display_name="Dragonz",
        unique_unit="warrior",
        settlement_names=["Dragon Keep", "Fire Valley", "Scale City", "Wyrm Haven", "Ember Falls"],
    ),
}

FALLBACK_SETTLEMENT_NAMES = [
    "New Haven",
    "Solana Springs",
    "Crypto City",
    "Token Town",
    "Block Heights",
    "Chain Valley",
    "Mint Mesa",
    "Stake Lake",
    "Yield Point",
    "Defi Dale",
]

# =============================================================================
# Terrain, features, resources, improvements
# =============================================================================

TERRAIN_YIELDS: dict[TerrainType, Yields] = {
    TerrainType.GRASSLAND: Yields(growth=2),
    TerrainType.PLAINS: Yields(production=1, growth=1),
    TerrainType.FOREST: Yields(production=1, growth=1),
    TerrainType.HILLS: Yields(production=2),
    TerrainType.MOUNTAIN: Yields(),
    TerrainType.WATER: Yields(gold=1, growth=1),
    TerrainType.DESERT: Yields(),
    TerrainType.JUNGLE: Yields(growth=1),
    TerrainType.MARSH: Yields(production=-1, growth=1),
}

IMPASSABLE_TERRAIN = {TerrainType.WATER, TerrainType.MOUNTAIN}

FEATURE_YIELDS: dict[TileFeature, Yields] = {
    TileFeature.RIVER: Yields(gold=1, growth=1),
    TileFeature.OASIS: Yields(growth=3),
}

# Applied only when the resource is revealed and improved
RESOURCE_YIELDS: dict[str, Yields] = {
    "iron": Yields(production=1),
    "horses": Yields(gold=1, production=1),
    "gems": Yields(gold=3),
    "marble": Yields(culture=2),
    "whitelists": Yields(gold=1, growth=2),
    "rpcs": Yields(research=3),
    "wheat": Yields(growth=1),
    "cattle": Yields(production=1, growth=1),
}

RESOURCE_CATEGORIES: dict[str, ResourceCategory] = {
    "iron": ResourceCategory.STRATEGIC,
    "horses": ResourceCategory.STRATEGIC,
    "gems": ResourceCategory.LUXURY,
    "marble": ResourceCategory.LUXURY,
    "whitelists": ResourceCategory.LUXURY,
    "rpcs": ResourceCategory.LUXURY,
    "wheat": ResourceCategory.BONUS,
    "cattle": ResourceCategory.BONUS,
}


class ImprovementDefinition(BaseModel):
    id: str
    name: str
    yields: Yields
    valid_terrain: list[TerrainType]
    valid_resources: list[str] = []
    prerequisite_tech: str | None = None


IMPROVEMENT_DEFINITIONS: dict[str, ImprovementDefinition] = {
    "farm": ImprovementDefinition(
        id="farm",
        name="Farm",
        yields=Yields(growth=1),
        valid_terrain=[TerrainType.GRASSLAND, TerrainType.PLAINS, TerrainType.DESERT],
        valid_resources=["wheat"],
    ),
    "mine": ImprovementDefinition(
        id="mine",
        name="Mine",
        yields=Yields(production=1),
        valid_terrain=[TerrainType.HILLS],
        valid_resources=["iron", "gems"],
        prerequisite_tech="mining",
    ),
    "pasture": ImprovementDefinition(
        id="pasture",
        name="Pasture",
        yields=Yields(production=1, growth=1),
        valid_terrain=[TerrainType.GRASSLAND, TerrainType.PLAINS],
        valid_resources=["horses", "cattle"],
        prerequisite_tech="animal_husbandry",
    ),
    "quarry": ImprovementDefinition(
        id="quarry",
        name="Quarry",
        yields=Yields(production=1, culture=1),
        valid_terrain=[TerrainType.HILLS],
        valid_resources=["marble"],
        prerequisite_tech="mining",
    ),
    "mint": ImprovementDefinition(
        id="mint",
        name="NFT Mint",
        yields=Yields(gold=2, growth=1),
        valid_terrain=[TerrainType.GRASSLAND, TerrainType.PLAINS, TerrainType.DESERT],
        valid_resources=["whitelists"],
        prerequisite_tech="minting",
    ),
    "server_farm": ImprovementDefinition(
        id="server_farm",
        name="RPC Server Farm",
        yields=Yields(research=2, gold=1),
        valid_terrain=[TerrainType.PLAINS, TerrainType.HILLS],
        valid_resources=["rpcs"],
        prerequisite_tech="coding",
    ),
}

# =============================================================================
# Units
# =============================================================================


class UnitDefinition(BaseModel):
    type: str
    health: int
    movement: int
    combat_strength: int
    ranged_strength: int = 0
    settlement_strength: int = 0
    production_cost: int
    maintenance: int = 0
    is_civilian: bool = False
    can_attack: bool = True
    build_charges: int = 0
    prerequisite_tech: str | None = None
    tribe: TribeName | None = None  # Unique units are only buildable by their tribe


def _unit(type_: str, health: int, movement: int, combat: int, ranged: int, settlement: int,
          cost: int, maintenance: int, **extra) -> UnitDefinition:
    return UnitDefinition(
        type=type_,
        health=health,
        movement=movement,
        combat_strength=combat,
        ranged_strength=ranged,
        settlement_strength=settlement,
        production_cost=cost,
        maintenance=maintenance,
        **extra,
    )


UNIT_DEFINITIONS: dict[str, UnitDefinition] = {
    "scout": _unit("scout", 50, 4, 5, 0, 5, 30, 1),
    "warrior": _unit("warrior", 100, 2, 20, 0, 20, 40, 2),
    "archer": _unit("archer", 80, 2, 10, 25, 25, 50, 2, prerequisite_tech="archery"),
    "settler": _unit("settler", 50, 2, 0, 0, 0, 80, 0, is_civilian=True, can_attack=False),
    "builder": _unit("builder", 50, 2, 0, 0, 0, 50, 0, is_civilian=True, can_attack=False, build_charges=3),
    "great_person": _unit("great_person", 50, 3, 0, 0, 0, 0, 0, is_civilian=True, can_attack=False),
    "horseman": _unit("horseman", 90, 4, 18, 0, 18, 60, 3, prerequisite_tech="horseback_riding"),
    "swordsman": _unit("swordsman", 120, 2, 35, 0, 35, 80, 3, prerequisite_tech="iron_working"),
    "sniper": _unit("sniper", 90, 2, 15, 40, 40, 90, 3, prerequisite_tech="botting"),
    "bombard": _unit("bombard", 90, 2, 25, 25, 75, 170, 6, prerequisite_tech="siege_weapons"),
    "banana_slinger": _unit(
        "banana_slinger", 80, 2, 15, 30, 30, 50, 2, prerequisite_tech="archery", tribe=TribeName.MONKES
    ),
    "neon_geck": _unit(
        "neon_geck", 90, 3, 15, 40, 40, 90, 3, prerequisite_tech="botting", tribe=TribeName.GECKOS
    ),
    "deadgod": _unit(
        "deadgod", 120, 2, 45, 0, 45, 80, 3, prerequisite_tech="iron_working", tribe=TribeName.DEGODS
    ),
    "stuckers": _unit(
        "stuckers", 120, 3, 35, 0, 35, 80, 3, prerequisite_tech="iron_working", tribe=TribeName.CETS
    ),
}

MELEE_UNITS = {"warrior", "swordsman", "deadgod", "stuckers"}
RANGED_UNITS = {"archer", "sniper", "banana_slinger", "neon_geck"}

RARITY_WEIGHTS: dict[UnitRarity, int] = {
    UnitRarity.COMMON: 50,
    UnitRarity.UNCOMMON: 30,
    UnitRarity.RARE: 15,
    UnitRarity.EPIC: 4,
    UnitRarity.LEGENDARY: 1,
}

# (combat bonus, movement bonus)
RARITY_BONUSES: dict[UnitRarity, tuple[int, int]] = {
    UnitRarity.COMMON: (0, 0),
    UnitRarity.UNCOMMON: (2, 0),
    UnitRarity.RARE: (5, 0),
    UnitRarity.EPIC: (10, 1),
    UnitRarity.LEGENDARY: (20, 1),
}


class PromotionDefinition(BaseModel):
    id: str
    name: str
    prerequisite: str | None = None
    combat_bonus: int = 0
    movement_bonus: int = 0
    heal_bonus: int = 0


PROMOTION_DEFINITIONS: dict[str, PromotionDefinition] = {
    "drill": PromotionDefinition(id="drill", name="Drill", combat_bonus=5),
    "shock": PromotionDefinition(id="shock", name="Shock", prerequisite="drill", combat_bonus=5),
    "swift": PromotionDefinition(id="swift", name="Swift", movement_bonus=1),
    "medic": PromotionDefinition(id="medic", name="Medic", heal_bonus=10),
}

# kind -> (effect, amount)
GREAT_PERSON_EFFECTS: dict[str, tuple[str, int]] = {
    "merchant": ("gold", 100),
    "scientist": ("research", 40),
    "artist": ("culture", 40),
    "engineer": ("production", 60),
}

GREAT_PERSON_SPAWN_CHANCE = 0.5


class GreatPersonDefinition(BaseModel):
    """A named great person, earned once per game when a counter reaches its threshold."""

    id: str
    name: str
    kind: str  # key into GREAT_PERSON_EFFECTS
    stat: str  # GreatPeopleAccumulator field
    amount: int


def _great_person(id_: str, name: str, kind: str, stat: str, amount: int) -> GreatPersonDefinition:
    return GreatPersonDefinition(id=id_, name=name, kind=kind, stat=stat, amount=amount)


# Checked in this order; at most one spawns per turn.
GREAT_PERSON_DEFINITIONS: dict[str, GreatPersonDefinition] = {
    "mert": _great_person("mert", "Mert", "scientist", "research", 100),
    "toly": _great_person("toly", "Toly", "scientist", "research", 200),
    "big_brain": _great_person("big_brain", "Big Brain", "merchant", "gold", 200),
    "retired_chad_dev": _great_person("retired_chad_dev", "Retired Chad Dev", "merchant", "gold", 400),
    "dingaling": _great_person("dingaling", "Dingaling", "merchant", "gold", 1000),
    "scum": _great_person("scum", "SCUM", "artist", "culture", 80),
    "monoliff": _great_person("monoliff", "Monoliff", "artist", "culture", 250),
    "iced_knife": _great_person("iced_knife", "Iced Knife", "artist", "culture", 400),
    "watch_king": _great_person("watch_king", "Watch King", "merchant", "trade_routes", 4),
    "fxnction": _great_person("fxnction", "Fxnction", "engineer", "wonders_built", 2),
    "blocksmyth": _great_person("blocksmyth", "Blocksmyth", "engineer", "wonders_built", 4),
}

# =============================================================================
# Buildings and wonders
# =============================================================================


class BuildingDefinition(BaseModel):
    id: str
    name: str
    category: str  # economy | tech | culture | military | production
    production_cost: int
    maintenance: int
    yields: Yields
    prerequisite_tech: str | None = None


BUILDING_DEFINITIONS: dict[str, BuildingDefinition] = {
    "monument": BuildingDefinition(
        id="monument", name="Monument", category="culture", production_cost=30, maintenance=0,
        yields=Yields(culture=2),
    ),
    "granary": BuildingDefinition(
        id="granary", name="Granary", category="economy", production_cost=40, maintenance=1,
        yields=Yields(growth=2), prerequisite_tech="farming",
    ),
    "library": BuildingDefinition(
        id="library", name="Library", category="tech", production_cost=50, maintenance=1,
        yields=Yields(research=2), prerequisite_tech="coding",
    ),
    "marketplace": BuildingDefinition(
        id="marketplace", name="Marketplace", category="economy", production_cost=60, maintenance=1,
        yields=Yields(gold=3), prerequisite_tech="minting",
    ),
    "barracks": BuildingDefinition(
        id="barracks", name="Barracks", category="military", production_cost=50, maintenance=1,
        yields=Yields(production=1), prerequisite_tech="bronze_working",
    ),
    "gallery": BuildingDefinition(
        id="gallery", name="Gallery", category="culture", production_cost=60, maintenance=1,
        yields=Yields(culture=3), prerequisite_tech="pfps",
    ),
    "workshop": BuildingDefinition(
        id="workshop", name="Workshop", category="production", production_cost=70, maintenance=1,
        yields=Yields(production=2), prerequisite_tech="iron_working",
    ),
    "bank": BuildingDefinition(
        id="bank", name="Bank", category="economy", production_cost=100, maintenance=2,
        yields=Yields(gold=5), prerequisite_tech="lending",
    ),
}


class WonderDefinition(BaseModel):
    id: str
    name: str
    production_cost: int
    yields: Yields
    prerequisite_tech: str | None = None
    score_bonus: int = 50


WONDER_DEFINITIONS: dict[str, WonderDefinition] = {
    "solana_monument": WonderDefinition(
        id="solana_monument", name="Solana Monument", production_cost=120, yields=Yields(culture=4),
    ),
    "candy_machine": WonderDefinition(
        id="candy_machine", name="Candy Machine", production_cost=150, yields=Yields(gold=5),
        prerequisite_tech="smart_contracts", score_bonus=75,
    ),
    "magic_eden": WonderDefinition(
        id="magic_eden", name="Magic Eden", production_cost=180, yields=Yields(gold=4, culture=2),
        prerequisite_tech="currency", score_bonus=100,
    ),
}

# =============================================================================
# Technologies, cultures and policies
# =============================================================================


class TechDefinition(BaseModel):
    id: str
    name: str
    cost: int
    prerequisites: list[str] = []
    reveals_resources: list[str] = []


def _tech(id_: str, name: str, cost: int, prerequisites: list[str] | None = None,
          reveals: list[str] | None = None) -> TechDefinition:
    return TechDefinition(
        id=id_, name=name, cost=cost, prerequisites=prerequisites or [], reveals_resources=reveals or []
    )


TECH_DEFINITIONS: dict[str, TechDefinition] = {
    "mining": _tech("mining", "Mining", 20, reveals=["iron"]),
    "animal_husbandry": _tech("animal_husbandry", "Animal Husbandry", 20, reveals=["horses"]),
    "farming": _tech("farming", "Farming", 20, ["animal_husbandry"]),
    "coding": _tech("coding", "Coding", 25),
    "smart_contracts": _tech("smart_contracts", "Smart Contracts", 25, ["coding"]),
    "archery": _tech("archery", "Archery", 25, ["animal_husbandry"]),
    "minting": _tech("minting", "Minting", 30),
    "bronze_working": _tech("bronze_working", "Bronze Working", 35, ["mining"]),
    "pfps": _tech("pfps", "PFPs", 35, ["coding"]),
    "horseback_riding": _tech("horseback_riding", "Horseback Riding", 40, ["farming"]),
    "iron_working": _tech("iron_working", "Iron Working", 50, ["bronze_working"]),
    "currency": _tech("currency", "Currency", 55, ["minting"]),
    "lending": _tech("lending", "Lending", 60, ["smart_contracts"]),
    "botting": _tech("botting", "Botting", 70, ["iron_working"]),
    "siege_weapons": _tech("siege_weapons", "Siege Weapons", 120, ["iron_working"]),
}


class PolicyDefinition(BaseModel):
    id: str
    name: str
    yields: Yields  # Flat bonus added to the owner's per-turn yields while slotted


class CultureDefinition(BaseModel):
    id: str
    name: str
    cost: int
    prerequisites: list[str] = []
    policy_a: PolicyDefinition
    policy_b: PolicyDefinition


CULTURE_DEFINITIONS: dict[str, CultureDefinition] = {
    "community": CultureDefinition(
        id="community",
        name="Community",
        cost=15,
        policy_a=PolicyDefinition(id="welcome_party", name="Welcome Party", yields=Yields(culture=2)),
        policy_b=PolicyDefinition(id="strong_together", name="Strong Together", yields=Yields(production=1)),
    ),
    "otc_trading": CultureDefinition(
        id="otc_trading",
        name="OTC Trading",
        cost=20,
        policy_a=PolicyDefinition(id="foxy_swap", name="Foxy Swap", yields=Yields(gold=2)),
        policy_b=PolicyDefinition(id="broker", name="Broker", yields=Yields(gold=1, research=1)),
    ),
    "influence": CultureDefinition(
        id="influence",
        name="Influence",
        cost=20,
        policy_a=PolicyDefinition(id="clout", name="Clout", yields=Yields(culture=1, gold=1)),
        policy_b=PolicyDefinition(id="kol_status", name="KOL Status", yields=Yields(gold=3)),
    ),
    "early_empire": CultureDefinition(
        id="early_empire",
        name="Early Empire",
        cost=35,
        prerequisites=["community"],
        policy_a=PolicyDefinition(id="colonists", name="Colonists", yields=Yields(growth=2)),
        policy_b=PolicyDefinition(id="tax_collectors", name="Tax Collectors", yields=Yields(gold=3)),
    ),
}

POLICY_DEFINITIONS: dict[str, PolicyDefinition] = {
    policy.id: policy
    for culture in CULTURE_DEFINITIONS.values()
    for policy in (culture.policy_a, culture.policy_b)
}

# =============================================================================
# Settlement milestones
# =============================================================================


class MilestoneOption(BaseModel):
    name: str
    effect: str  # instant_gold | free_unit | culture_boost | growth_boost
    amount: int = 0
    unit_type: str | None = None


class MilestoneReward(BaseModel):
    level: int
    option_a: MilestoneOption
    option_b: MilestoneOption


MILESTONE_REWARDS: dict[int, MilestoneReward] = {
    2: MilestoneReward(
        level=2,
        option_a=MilestoneOption(name="Free Scout", effect="free_unit", unit_type="scout"),
        option_b=MilestoneOption(name="Gold Cache", effect="instant_gold", amount=25),
    ),
    3: MilestoneReward(
        level=3,
        option_a=MilestoneOption(name="Border Push", effect="culture_boost", amount=20),
        option_b=MilestoneOption(name="Harvest Festival", effect="growth_boost", amount=10),
    ),
    4: MilestoneReward(
        level=4,
        option_a=MilestoneOption(name="Free Warrior", effect="free_unit", unit_type="warrior"),
        option_b=MilestoneOption(name="Gold Rush", effect="instant_gold", amount=50),
    ),
    5: MilestoneReward(
        level=5,
        option_a=MilestoneOption(name="Tribal Champion", effect="free_unit"),  # Tribe's unique unit
        option_b=MilestoneOption(name="Grand Festival", effect="culture_boost", amount=40),
    ),
}

# =============================================================================
# Golden ages
# =============================================================================

GOLDEN_AGE_BONUS_LEVELS = {"20": 0.20, "30": 0.30, "40": 0.40}


class GoldenAgeTrigger(BaseModel):
    id: str
    name: str
    duration: int
    tribe: TribeName | None = None  # Tribal triggers fire only for their tribe


# Checked in this order; the first one met starts the golden age.
GOLDEN_AGE_TRIGGERS: dict[str, GoldenAgeTrigger] = {
    trigger.id: trigger
    for trigger in [
        GoldenAgeTrigger(id="research_3_techs_in_5_turns", name="Rapid Innovation", duration=3),
        GoldenAgeTrigger(id="found_4th_settlement", name="Expansion", duration=3),
        GoldenAgeTrigger(id="reach_10_settlement_levels", name="Settlement Growth", duration=3),
        GoldenAgeTrigger(id="build_2_wonders", name="Wonder Builder", duration=3),
        GoldenAgeTrigger(id="earn_3_great_people", name="Great Era", duration=3),
        GoldenAgeTrigger(id="reach_6_trade_routes_first", name="Trade Empire", duration=3),
        GoldenAgeTrigger(id="monkes_500_gold", name="Banana Hoard", duration=4, tribe=TribeName.MONKES),
        GoldenAgeTrigger(id="geckos_era3_tech_first", name="Tech Pioneers", duration=4, tribe=TribeName.GECKOS),
        GoldenAgeTrigger(id="degods_10_kills", name="Warmonger", duration=4, tribe=TribeName.DEGODS),
    ]
}

# A tribe's era is set by the most expensive tech it has researched.
ERA_TECH_COST_THRESHOLDS = {2: 50, 3: 100}

GOLDEN_AGE_EFFECTS_BY_ERA: dict[int, list[str]] = {
    era: [f"{channel}_{level}" for channel in ("research", "culture", "production", "gold")]
    for era, level in ((1, 20), (2, 30), (3, 40))
}


def golden_age_yield_bonus(golden_age: GoldenAgeState, channel: str) -> float:
    """Fractional bonus an active golden age grants to a yield channel.

    Effects are named ``<channel>_<percent>``, e.g. ``gold_20``.
    """
    if not golden_age.active or not golden_age.effect:
        return 0.0
    effect_channel, _, level = golden_age.effect.rpartition("_")
    if effect_channel != channel:
        return 0.0
    return GOLDEN_AGE_BONUS_LEVELS.get(level, 0.0)


def get_tribe_bonuses(tribe_name: TribeName) -> TribeBonuses:
    return TRIBE_DEFINITIONS[tribe_name].bonuses


def get_unit_production_bonus(unit_type: str, bonuses: TribeBonuses) -> float:
    """Tribe production speed bonus for a unit type (0.0 when none applies)."""
    if unit_type in MELEE_UNITS:
        return bonuses.melee_unit_production_percent
    if unit_type in RANGED_UNITS:
        return bonuses.ranged_unit_production_percent
    return 0.0
