from __future__ import annotations

from pathlib import Path
import sys
from typing import Any

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storage.record_store import collection_store


def _circle(radius: float, target: str, on_hit: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "CircleQuery", "Radius": radius, "Target": target, "OnHit": on_hit}


SAMPLE_ATTRIBUTES = [
    {"Name": "Strength", "Min": "0", "Max": "100"},
    {"Name": "Dexterity", "Min": "0", "Max": "100"},
    {"Name": "Intelligence", "Min": "0", "Max": "100"},
    {"Name": "Wisdom", "Min": "0", "Max": "100"},
    {"Name": "MaxHealth", "Min": "1", "Max": "$Strength * 10 + 100"},
    {"Name": "Health", "Min": "0", "Max": "$MaxHealth"},
]

SAMPLE_EFFECTS = [
    {
        "!Effect": True, "Name": "Burning", "Asset": "Assets/Effects/Burning",
        "Period": 0.5, "Duration": 10.0, "MaxStacks": 3,
        "OnTick": [{"type": "Damage", "Type": "Fire", "Potency": 25}],
    },
    {
        "!Effect": True, "Name": "Regeneration", "Asset": "Assets/Effects/Regeneration",
        "Period": 1.0, "Duration": 15.0,
        "OnTick": [{"type": "Heal", "Potency": 50}],
    },
    {
        "!Effect": True, "Name": "Strength Boost", "Asset": "Assets/Effects/StrengthBoost",
        "Period": 0.0, "Duration": 30.0,
        "OnTick": [{"type": "StatModifier", "Attribute": "Strength", "Value": 10, "Operation": "Add"}],
    },
    {
        "!Effect": True, "Name": "Stunned", "Asset": "Assets/Effects/Stunned",
        "Period": 0.0, "Duration": 1.0,
        "OnTick": [],
    },
]

SAMPLE_ACTORS = [
    {
        "!Actor": True, "Name": "Sword Strike", "Asset": "Assets/Effects/Sword Strike", "Lifetime": 3.5,
        "Triggers": [
            {"Time": 0.25, "Actions": [_circle(0.5, "Enemy", [
                {"type": "Damage", "Potency": 80},
                {"type": "Effect", "Name": "Stunned", "Duration": 0.75},
            ])]},
            {"Time": 1.25, "Actions": [_circle(1.0, "Enemy", [{"type": "Damage", "Potency": 120}])]},
        ],
    },
    {
        "!Actor": True, "Name": "Fireball", "Asset": "Assets/Effects/Fireball", "Lifetime": 2.0,
        "Triggers": [
            {"Time": 0.1, "Actions": [_circle(1.5, "Enemy", [
                {"type": "Damage", "Potency": 150},
                {"type": "Effect", "Name": "Burning", "Duration": 3.0},
            ])]},
        ],
    },
    {
        "!Actor": True, "Name": "Cone Attack", "Asset": "Assets/Effects/Cone Attack", "Lifetime": 2.5,
        "Triggers": [
            {"Time": 0.3, "Actions": [{
                "type": "ConeQuery", "Radius": 3.0, "Angle": 45, "Target": "Enemy",
                "OnHit": [{"type": "Damage", "Potency": 100}],
            }]},
        ],
    },
    {
        "!Actor": True, "Name": "Heal Aura", "Asset": "Assets/Effects/Heal Aura", "Lifetime": 5.0,
        "Triggers": [
            {"Time": t, "Actions": [_circle(2.0, "Ally", [{"type": "Effect", "Name": "Regeneration", "Duration": 10.0}])]}
            for t in (0.5, 2.5)
        ],
    },
]

SAMPLES = {
    "attributes": SAMPLE_ATTRIBUTES,
    "effects": SAMPLE_EFFECTS,
    "actors": SAMPLE_ACTORS,
}


def seed(fs) -> None:
    for name, samples in SAMPLES.items():
        records = collection_store(fs, name)
        for record in samples:
            records.add(record)
