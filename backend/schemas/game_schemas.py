from __future__ import annotations

from typing import Any

from schemas.nodes import (
    SchemaRegistry,
    array,
    enum,
    literal,
    meta,
    number,
    obj,
    optional,
    string,
    union,
)

TARGETS = ("Enemy", "Ally", "Self", "All")
DAMAGE_TYPES = ("Physical", "Magical", "Fire", "Ice", "Lightning", "Poison")


def _tag(value: str, description: str) -> Any:
    return literal(value).describe(meta(description, "hidden"))


# actors: Triggers -> Actions -> OnHit
DAMAGE_CALLBACK = obj({
    "type": _tag("Damage", "Callback type"),
    "Potency": number().describe(meta("Damage potency value", "number")),
})

EFFECT_CALLBACK = obj({
    "type": _tag("Effect", "Callback type"),
    "Name": string().describe(meta("Effect name", "effectSelect")),
    "Duration": number().describe(meta("Effect duration in seconds", "number")),
})

ON_HIT_CALLBACK = union("type", [DAMAGE_CALLBACK, EFFECT_CALLBACK])

CIRCLE_QUERY_ACTION = obj({
    "type": _tag("CircleQuery", "Action type"),
    "Radius": number().describe(meta("Query radius", "number")),
    "Target": enum(*TARGETS).describe(meta("Target type", "enum")),
    "OnHit": array(ON_HIT_CALLBACK).describe(meta("Callbacks to execute on hit", "array")),
})

CONE_QUERY_ACTION = obj({
    "type": _tag("ConeQuery", "Action type"),
    "Radius": number().describe(meta("Cone radius", "number")),
    "Angle": number().describe(meta("Cone angle in degrees", "number")),
    "Target": enum(*TARGETS).describe(meta("Target type", "enum")),
    "OnHit": array(ON_HIT_CALLBACK).describe(meta("Callbacks to execute on hit", "array")),
})

ACTION = union("type", [CIRCLE_QUERY_ACTION, CONE_QUERY_ACTION])

TRIGGER = obj({
    "Time": number().describe(meta("Trigger time in seconds", "number")),
    "Actions": array(ACTION).describe(meta("Actions to execute at this time", "array")),
})

ACTOR_SCHEMA = obj({
    "!Actor": optional(literal(True)),
    "Name": string().describe(meta("Actor name", "string")),
    "Asset": string().describe(meta("Asset path for the actor", "string")),
    "Lifetime": number().describe(meta("Actor lifetime in seconds", "number")),
    "Triggers": array(TRIGGER).describe(meta("List of time-based triggers", "array")),
})

# effects: OnTick callbacks
DAMAGE_TICK_CALLBACK = obj({
    "type": _tag("Damage", "Callback type"),
    "Type": enum(*DAMAGE_TYPES).describe(meta("Damage type", "enum")),
    "Potency": optional(number()).describe(meta("Damage potency value", "number")),
})

HEAL_TICK_CALLBACK = obj({
    "type": _tag("Heal", "Callback type"),
    "Potency": number().describe(meta("Heal potency value", "number")),
})

STAT_MODIFIER_TICK_CALLBACK = obj({
    "type": _tag("StatModifier", "Callback type"),
    "Attribute": string().describe(meta("Attribute to modify", "entityReference", collection="attributes")),
    "Value": number().describe(meta("Modifier value", "number")),
    "Operation": enum("Add", "Multiply", "Set").describe(meta("Modifier operation", "enum")),
})

ON_TICK_CALLBACK = union("type", [DAMAGE_TICK_CALLBACK, HEAL_TICK_CALLBACK, STAT_MODIFIER_TICK_CALLBACK])

EFFECT_SCHEMA = obj({
    "!Effect": optional(literal(True)),
    "Name": string().describe(meta("Effect name", "string")),
    "Asset": string().describe(meta("Asset path for the effect", "string")),
    "Period": number().describe(meta("Time between ticks in seconds", "number")),
    "Duration": optional(number()).describe(meta("Total effect duration in seconds", "number")),
    "MaxStacks": optional(number()).describe(meta("Maximum number of stacks", "number")),
    "OnTick": array(ON_TICK_CALLBACK).describe(meta("Callbacks to execute each tick", "array")),
})

# attributes: Min/Max reference other attributes, e.g. `$MaxHealth`
ATTRIBUTE_SCHEMA = obj({
    "Name": string().describe("The name of the attribute."),
    "Min": string().describe(meta(
        "The minimum value formula. Can reference other attributes with $ prefix (e.g., $MaxHealth).", "formula",
    )),
    "Max": string().describe(meta(
        "The maximum value formula. Can reference other attributes with $ prefix (e.g., $MaxHealth).", "formula",
    )),
})

REGISTRY = SchemaRegistry({
    "Actor": ACTOR_SCHEMA,
    "Effect": EFFECT_SCHEMA,
    "Attribute": ATTRIBUTE_SCHEMA,
})

COLLECTIONS: dict[str, dict[str, Any]] = {
    "actors": {
        "schema": ACTOR_SCHEMA,
        "title": "Actors",
        "create_button_text": "Create New Actor",
        "identity_field": "Name",
    },
    "effects": {
        "schema": EFFECT_SCHEMA,
        "title": "Effects",
        "create_button_text": "Create New Effect",
        "identity_field": "Name",
    },
    "attributes": {
        "schema": ATTRIBUTE_SCHEMA,
        "title": "Attributes",
        "create_button_text": "Create New Attribute",
        "identity_field": "Name",
    },
}


def collection_config(name: str) -> dict[str, Any]:
    if name not in COLLECTIONS:
        raise KeyError(f"unknown collection: {name}")
    return COLLECTIONS[name]
