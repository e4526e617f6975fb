"""World events, seasonal events, event cards, loyalty and traditions."""
from __future__ import annotations
import logging
import random

from .balance import BalanceConfig
from .types import (
    EventCard, EventCardChoice, GameEvent, Role, Season, Tradition, season_of, TICKS_PER_SEASON,
)
from .world import WorldState

logger = logging.getLogger("sanguo.events")

DROUGHT_TICKS = 4
REBELLION_LOYALTY = 20
REBELLION_CHANCE = 0.1
CARD_DEDUP_WINDOW = 5

TRADITION_RULES = {
    #  tradition             measure             threshold
    Tradition.MARTIAL:    ("battle wins",      5),
    Tradition.MERCANTILE: ("treasury",         2000),
    Tradition.SCHOLARLY:  ("technologies",     3),
}

# Effect keys: gold, garrison, development, food (cities); military, intelligence,
# charm (leader); morale (faction); loyalty (all cities). scope picks the cities:
# "one_city" is the capital, "all" every city the player holds.
EVENT_CARD_POOL = [
    ("Bountiful Harvest", "Fair winds and timely rain bring a record harvest.", [
        ("Fill the treasury", {"gold": 200, "scope": "all"}),
        ("Share with the people", {"garrison": 1, "scope": "all"}),
    ]),
    ("Roving Bandits", "A band of brigands approaches the border.", [
        ("Send troops (-100 gold)", {"gold": -100, "garrison": 1, "scope": "all"}),
        ("Ignore them", {"garrison": -1, "scope": "all"}),
    ]),
    ("Passing Caravan", "A caravan from distant lands crosses your territory.", [
        ("Levy tolls", {"gold": 300, "scope": "one_city"}),
        ("Welcome the merchants", {"development": 1, "scope": "one_city"}),
    ]),
    ("Wandering Sage", "A travelling scholar offers his service for a generous stipend.", [
        ("Pay him well (-200 gold)", {"gold": -200, "intelligence": 1, "scope": "one_city"}),
        ("Politely decline", {}),
    ]),
    ("Camp Fever", "Sickness spreads through the barracks.", [
        ("Pay physicians (-200 gold)", {"gold": -200, "scope": "one_city"}),
        ("Endure the losses", {"garrison": -2, "scope": "one_city"}),
    ]),
    ("Bandits Surrender", "Mountain bandits offer to join your banner.", [
        ("Enlist them", {"garrison": 2, "scope": "one_city"}),
        ("Send them home", {"charm": 1}),
    ]),
    ("Ancient Treatise", "An old military manual is unearthed from a tomb.", [
        ("Study it yourself", {"military": 1}),
        ("Give it to your advisors", {"intelligence": 1}),
    ]),
    ("River Flood", "Days of rain burst the riverbanks.", [
        ("Fund relief (-300 gold)", {"gold": -300, "scope": "all"}),
        ("Conscript labourers", {"garrison": -1, "gold": 100, "scope": "all"}),
    ]),
    ("Envoy Arrives", "A rival envoy brings lavish gifts and talk of peace.", [
        ("Keep the gifts", {"gold": 400, "scope": "one_city"}),
        ("Receive him with honour", {"charm": 1, "morale": 5}),
    ]),
    ("Captured Spy", "Guards seize a suspicious stranger in the market.", [
        ("Interrogate", {"intelligence": 1}),
        ("Release with courtesy", {"charm": 1, "loyalty": 5}),
    ]),
    ("Iron Vein", "Scouts discover an untouched iron deposit.", [
        ("Mine it", {"gold": 500, "scope": "one_city"}),
        ("Build an armoury", {"garrison": 2, "scope": "one_city"}),
    ]),
    ("Merchant's Donation", "A wealthy merchant offers silver in exchange for office.", [
        ("Accept", {"gold": 600, "loyalty": -5, "scope": "one_city"}),
        ("Refuse", {"loyalty": 10}),
    ]),
    ("Granary Fire", "Fire sweeps through the granaries.", [
        ("Fight the blaze (-200 gold)", {"gold": -200, "food": -30, "scope": "one_city"}),
        ("Open the stores to the people", {"food": -60, "loyalty": 10, "scope": "one_city"}),
    ]),
    ("Veterans Return", "Retired soldiers volunteer to serve again.", [
        ("Enlist them (-200 gold)", {"garrison": 3, "gold": -200, "scope": "one_city"}),
        ("Reward and retire them", {"charm": 1, "gold": -100, "scope": "one_city"}),
    ]),
    ("Village Festival", "The people prepare a great festival in your honour.", [
        ("Sponsor it (-150 gold)", {"gold": -150, "morale": 15, "scope": "one_city"}),
        ("Attend in person", {"charm": 1, "loyalty": 5}),
    ]),
    ("Refugees", "Refugees from the wars pour across the border.", [
        ("Settle them", {"gold": -200, "food": 50, "loyalty": 10, "scope": "one_city"}),
        ("Turn them away", {"morale": -5}),
    ]),
    ("Blizzard", "A sudden blizzard closes every road.", [
        ("Warm the people (-300 gold)", {"gold": -300, "loyalty": 10, "scope": "all"}),
        ("Hold fast", {"garrison": -1, "scope": "all"}),
    ]),
    ("Welcome Rain", "Rain ends a long dry spell.", [
        ("Stockpile grain", {"food": 100, "scope": "all"}),
        ("Celebrate", {"morale": 10, "loyalty": 5}),
    ]),
]


class EventEngine:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng

    # ── World and seasonal events ────────────────────────────────────────

    def world_event(self, events: list[str]) -> list[GameEvent]:
        w = self.world
        cities = [c for c in w.controlled_cities() if w.city_faction(c)]
        if not cities or self.rng.random() >= self.balance.events.world_event_chance:
            return []
        city = self.rng.choice(cities)
        kind = self.rng.choice(["plague", "drought", "bandits"])
        fid = w.city_faction(city)
        if kind == "plague":
            w.adjust_garrison(city, -2)
            w.adjust_food(city, -20)
            detail = f"Plague strikes {city.name}"
            events.append(f"🦠 {detail} (garrison {city.garrison})")
        elif kind == "drought":
            city.drought_until = w.tick + DROUGHT_TICKS
            detail = f"Drought withers the fields of {city.name}"
            events.append(f"☀️ {detail}")
        else:
            w.adjust_gold(city, -50)
            detail = f"Bandits raid {city.name}"
            events.append(f"🏴 {detail}")
        return [GameEvent(kind, detail, city_id=city.id, faction_id=fid)]

    def seasonal_event(self, events: list[str]) -> list[GameEvent]:
        w = self.world
        if w.tick % TICKS_PER_SEASON != 0:
            return []
        season = season_of(w.tick)
        food = {
            Season.SPRING: 10,
            Season.AUTUMN: 20,
            Season.WINTER: -self.balance.events.winter_food_loss,
        }.get(season)
        if food is None:
            return []
        for city in w.controlled_cities():
            w.adjust_food(city, food)
        label = {Season.SPRING: "Spring planting", Season.AUTUMN: "Autumn harvest",
                 Season.WINTER: "Winter sets in"}[season]
        events.append(f"🍂 {label}: food {food:+d} in every city")
        return [GameEvent(f"season_{season.value}", label)]

    # ── Event cards ──────────────────────────────────────────────────────

    def draw_event_card(self, events: list[str]) -> EventCard | None:
        w = self.world
        if w.pending_event_card is not None:
            return w.pending_event_card
        cfg = self.balance.events
        if self.rng.random() >= cfg.event_card_chance:
            return None
        eligible = [c for c in EVENT_CARD_POOL if c[0] not in w.recent_cards] or EVENT_CARD_POOL
        title, description, choices = self.rng.choice(eligible)
        w.card_counter += 1
        w.recent_cards = (w.recent_cards + [title])[-CARD_DEDUP_WINDOW:]

        scaled = []
        for label, effect in choices:
            effect = dict(effect)
            if "gold" in effect:
                effect["gold"] = round(effect["gold"] * cfg.event_card_gold_scale)
            scaled.append(EventCardChoice(label, effect))
        card = EventCard(id=f"event-{w.card_counter}", title=title,
                         description=description, choices=scaled)
        w.pending_event_card = card
        events.append(f"🎴 Event: {title}")
        return card

    def resolve_event_card(self, choice_index: int) -> list[str]:
        """Apply one choice of the pending card to the player faction."""
        w = self.world
        card = w.pending_event_card
        if card is None or not 0 <= choice_index < len(card.choices):
            return []
        choice = card.choices[choice_index]
        effect = choice.effect
        w.pending_event_card = None
        events = [f"🎴 {card.title}: {choice.label}"]

        fid = self.player_faction_id
        owned = w.faction_cities(fid)
        capital = w.capital(fid)
        targets = owned if effect.get("scope") == "all" else [capital] if capital else []
        for city in targets:
            w.adjust_gold(city, effect.get("gold", 0))
            w.adjust_garrison(city, effect.get("garrison", 0))
            w.adjust_development(city, effect.get("development", 0))
            w.adjust_food(city, effect.get("food", 0))

        faction = w.factions.get(fid)
        leader = w.characters.get(faction.leader_id) if faction else None
        if leader and leader.alive:
            for stat in ("military", "intelligence", "charm"):
                if effect.get(stat):
                    w.adjust_stat(leader, stat, effect[stat])
        if effect.get("morale"):
            w.adjust_morale(fid, effect["morale"])
        if effect.get("loyalty"):
            for city in owned:
                w.adjust_loyalty(city.id, effect["loyalty"])
        return events

    # ── Loyalty and traditions ───────────────────────────────────────────

    def update_loyalty(self, events: list[str]) -> list[GameEvent]:
        w = self.world
        rebellions = []
        for city in w.controlled_cities():
            controller = w.characters.get(city.controller_id)
            defenders = w.defenders_of(city)
            if (any(c.role == Role.GOVERNOR for c in defenders)
                    or (controller is not None and controller.charm >= 7)):
                w.adjust_loyalty(city.id, 1)
            if city.siege is not None or city.id in w.unsupplied:
                w.adjust_loyalty(city.id, -1)

            if w.get_loyalty(city.id) < REBELLION_LOYALTY and self.rng.random() < REBELLION_CHANCE:
                fid = w.city_faction(city)
                w.set_controller(city, None)
                w.clear_siege(city)
                w.adjust_garrison(city, -(city.garrison - city.garrison // 2))
                detail = f"{city.name} rises in revolt"
                events.append(f"🔥 {detail} and throws off its rulers")
                rebellions.append(GameEvent("rebellion", detail, city_id=city.id, faction_id=fid))
                logger.info("rebellion in %s (was %s)", city.id, fid)
        return rebellions

    def update_traditions(self, events: list[str]):
        w = self.world
        for faction in w.factions:
            measures = {
                Tradition.MARTIAL: w.faction_wins.get(faction.id, 0),
                Tradition.MERCANTILE: sum(c.gold for c in w.faction_cities(faction.id)),
                Tradition.SCHOLARLY: len(faction.techs),
            }
            for tradition, (measure, threshold) in TRADITION_RULES.items():
                if tradition in faction.traditions or measures[tradition] < threshold:
                    continue
                faction.traditions.append(tradition)
                events.append(f"🎖️ {faction.name} adopts the {tradition.value} tradition "
                              f"({measure} {measures[tradition]})")
