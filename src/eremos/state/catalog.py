"""
Static game data consulted by the engine.

Tier rosters, hostile profiles, boss configurations, and blueprint reward
categories. Lookups return None for unknown ids so callers can fall back
instead of raising.
"""

from pydantic import BaseModel, Field, model_validator

from .schema import BossReward


class DamageRange(BaseModel):
    """Inclusive total-damage range dealt when the player escapes."""
    min: int = Field(default=2, ge=0)
    max: int = Field(default=2, ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "DamageRange":
        if self.min > self.max:
            raise ValueError(f"damage range min {self.min} exceeds max {self.max}")
        return self


class HostileProfile(BaseModel):
    hostile_id: str
    name: str = ""
    difficulty: str = "normal"
    escape_damage: DamageRange | None = None  # None uses the engine default
    reputation_multiplier: float = 1.0
    deck: list[str] = Field(default_factory=list)


class TierConfig(BaseModel):
    tier: int
    high_threat_roster: list[str] = Field(default_factory=list)
    reputation_cap: int = 0  # Max loadout value counted per combat


class BossConfig(BaseModel):
    boss_id: str
    name: str
    ai_id: str
    tier: int = 1
    first_time_reward: BossReward
    repeat_reward: BossReward


class BlueprintCategory(BaseModel):
    reward_type: str     # e.g. DRONE_BLUEPRINT_LIGHT
    category_id: str     # e.g. light
    bonus_credits: int   # Paid instead when the category is exhausted


BLUEPRINT_REWARD_PREFIX = "DRONE_BLUEPRINT_"


def is_blueprint_reward(reward_type: str | None) -> bool:
    return bool(reward_type) and reward_type.startswith(BLUEPRINT_REWARD_PREFIX)


class Catalog(BaseModel):
    hostiles: dict[str, HostileProfile] = Field(default_factory=dict)
    tiers: dict[int, TierConfig] = Field(default_factory=dict)
    bosses: dict[str, BossConfig] = Field(default_factory=dict)
    blueprint_categories: dict[str, BlueprintCategory] = Field(default_factory=dict)

    def hostile(self, hostile_id: str | None) -> HostileProfile | None:
        if not hostile_id:
            return None
        return self.hostiles.get(hostile_id)

    def tier(self, tier: int) -> TierConfig | None:
        return self.tiers.get(tier)

    def boss(self, boss_id: str | None) -> BossConfig | None:
        if not boss_id:
            return None
        return self.bosses.get(boss_id)

    def high_threat_roster(self, tier: int) -> list[str]:
        config = self.tier(tier)
        return list(config.high_threat_roster) if config else []

    def reputation_cap(self, tier: int) -> int:
        config = self.tier(tier)
        return config.reputation_cap if config else 0

    def blueprint_category(self, reward_type: str | None) -> BlueprintCategory | None:
        if not reward_type:
            return None
        return self.blueprint_categories.get(reward_type)


def default_catalog() -> Catalog:
    """The shipped roster: three map tiers, their hostiles, and one boss."""
    hostiles = [
        HostileProfile(
            hostile_id="Scout Picket",
            name="Scout Picket",
            difficulty="easy",
            deck=["LASER_BLAST", "SCOUT_DRONE"],
        ),
        HostileProfile(
            hostile_id="Raider Wing",
            name="Raider Wing",
            difficulty="normal",
            escape_damage=DamageRange(min=2, max=3),
            deck=["LASER_BLAST", "RAIDER_DRONE", "OVERCHARGE"],
        ),
        HostileProfile(
            hostile_id="Interdiction Screen",
            name="Interdiction Screen",
            difficulty="hard",
            escape_damage=DamageRange(min=2, max=4),
            reputation_multiplier=1.25,
            deck=["TARGET_LOCK", "HEAVY_DRONE", "OVERCHARGE"],
        ),
        HostileProfile(
            hostile_id="Heavy Cruiser Defense Pattern",
            name="Heavy Cruiser Defense Pattern",
            difficulty="hard",
            escape_damage=DamageRange(min=3, max=5),
            reputation_multiplier=1.5,
            deck=["TARGET_LOCK", "HEAVY_DRONE", "BARRAGE"],
        ),
        HostileProfile(
            hostile_id="Nemesis",
            name="Nemesis",
            difficulty="boss",
            escape_damage=DamageRange(min=4, max=6),
            deck=["BARRAGE", "NEMESIS_CORE", "HEAVY_DRONE"],
        ),
    ]
    tiers = [
        TierConfig(tier=1, high_threat_roster=["Raider Wing"], reputation_cap=2000),
        TierConfig(
            tier=2,
            high_threat_roster=["Raider Wing", "Interdiction Screen"],
            reputation_cap=4000,
        ),
        TierConfig(
            tier=3,
            high_threat_roster=["Interdiction Screen", "Heavy Cruiser Defense Pattern"],
            reputation_cap=8000,
        ),
    ]
    bosses = [
        BossConfig(
            boss_id="BOSS_T1_NEMESIS",
            name="The Nemesis",
            ai_id="Nemesis",
            tier=1,
            first_time_reward=BossReward(credits=5000, ai_cores=3, reputation=500),
            repeat_reward=BossReward(credits=1000, ai_cores=1, reputation=100),
        ),
    ]
    categories = [
        BlueprintCategory(reward_type="DRONE_BLUEPRINT_LIGHT", category_id="light", bonus_credits=50),
        BlueprintCategory(reward_type="DRONE_BLUEPRINT_MEDIUM", category_id="medium", bonus_credits=75),
        BlueprintCategory(reward_type="DRONE_BLUEPRINT_HEAVY", category_id="heavy", bonus_credits=100),
    ]
    return Catalog(
        hostiles={h.hostile_id: h for h in hostiles},
        tiers={t.tier: t for t in tiers},
        bosses={b.boss_id: b for b in bosses},
        blueprint_categories={c.reward_type: c for c in categories},
    )
