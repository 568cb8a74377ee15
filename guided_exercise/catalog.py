"""Built-in exercise configs and the trigger catalog."""

from typing import Iterable

from .engine.errors import ConfigError
from .engine.stages import (
    BrainDumpDefaults,
    BreathingDefaults,
    EmotionDefaults,
    ExerciseConfig,
    ExerciseKind,
    GroundingDefaults,
    MindClearDefaults,
    build_stages,
)

CYCLIC_SIGH = ExerciseConfig(
    id="cyclic-sigh",
    title="Cyclic Physiological Sigh",
    short_title="Cyclic Sigh",
    kind=ExerciseKind.BREATHING,
    category="breathing",
    description="A rapid calm-down technique using double inhales and extended exhales.",
    stages=build_stages(require_trigger_log=False),
    breathing=BreathingDefaults(
        protocol="cyclic-sigh",
        target_cycles=3,
        inhale=2.5,
        exhale=6.0,
    ),
    instructions=(
        "Take two sharp inhales through your nose",
        "Fill your lungs completely, then take one more quick inhale",
        "Exhale slowly and completely through your mouth",
    ),
    tips=(
        "The second inhale reinflates collapsed alveoli in your lungs",
        "You should feel calmer within 30-60 seconds",
    ),
    copy={
        "cta_start": "Begin Breathing",
        "cta_complete": "I Feel Better",
        "completion_message": "You signaled your brain to calm down.",
    },
)

BREATHING_4_7_8 = ExerciseConfig(
    id="breathing-4-7-8",
    title="4-7-8 Breathing",
    short_title="4-7-8 Breath",
    kind=ExerciseKind.BREATHING,
    category="breathing",
    description="Inhale for 4, hold for 7, exhale for 8 to switch on rest-and-digest.",
    stages=build_stages(require_trigger_log=False),
    breathing=BreathingDefaults(
        protocol="4-7-8",
        target_cycles=4,
        inhale=4.0,
        hold=7.0,
        exhale=8.0,
    ),
    instructions=(
        "Inhale through your nose for 4 counts",
        "Hold your breath for 7 counts",
        "Exhale through your mouth for 8 counts",
    ),
    tips=(
        "The 7-second hold is the key",
        "The long exhale activates your vagus nerve",
    ),
    copy={
        "cta_start": "Start 4-7-8",
        "cta_complete": "I'm Calm",
        "completion_message": "Your body just switched from fight-or-flight to rest-and-digest.",
    },
)

GROUNDING_5_4_3_2_1 = ExerciseConfig(
    id="grounding-5-4-3-2-1",
    title="5-4-3-2-1 Grounding",
    short_title="Grounding",
    kind=ExerciseKind.GROUNDING,
    category="sensory",
    description="Reconnect with your immediate environment using all five senses.",
    stages=build_stages(require_trigger_log=True),
    grounding=GroundingDefaults(),
    instructions=(
        "Name 5 things you can see around you",
        "Name 4 things you can touch or feel",
        "Name 3 things you can hear right now",
        "Name 2 things you can smell",
        "Name 1 thing you can taste",
    ),
    tips=(
        'Be specific: "blue mug with chip on handle" not just "mug"',
        "It physically interrupts your rumination loop",
    ),
    copy={
        "cta_start": "Start Grounding",
        "cta_complete": "I'm Here Now",
        "completion_message": "You interrupted your rumination loop with what's actually around you.",
    },
)

EMOTION_WHEEL = ExerciseConfig(
    id="emotion-wheel",
    title="Emotion Wheel",
    short_title="Name the Feeling",
    kind=ExerciseKind.EMOTION,
    category="cognitive",
    description="Naming an emotion precisely takes some of its charge away. Name it to tame it.",
    stages=build_stages(require_trigger_log=True),
    emotion=EmotionDefaults(target_selections=1),
    instructions=(
        "Start with the basic emotion family",
        "Narrow it down to a more specific emotion",
        "Keep going until you find the exact word",
        "Notice how naming it changes the feeling",
    ),
    tips=(
        "The more specific the word, the bigger the effect",
        '"Annoyed" is more powerful than "upset"',
    ),
    copy={
        "cta_start": "Name the Feeling",
        "cta_complete": "I Named It",
        "completion_message": "You put a precise word on it. That's why naming it works.",
    },
)

BRAIN_DUMP = ExerciseConfig(
    id="brain-dump",
    title="Brain Dump",
    short_title="Write It Out",
    kind=ExerciseKind.BRAIN_DUMP,
    category="expressive",
    description="Get it out of your head and onto the page.",
    stages=build_stages(require_trigger_log=False),
    brain_dump=BrainDumpDefaults(min_words=10),
    instructions=(
        "Write everything in your head right now",
        "Don't edit. Don't filter. Just dump.",
        "No one will read this. Only the word count is kept.",
    ),
    tips=(
        "This is not a journal, it's a dump",
        "Write in fragments if you want",
    ),
    copy={
        "cta_start": "Start Writing",
        "cta_complete": "It's Out",
        "completion_message": "You moved it out of your head. That interrupts the loop.",
    },
)

MIND_CLEAR = ExerciseConfig(
    id="mind-clear",
    title="Mind Clear",
    short_title="Clear & Focus",
    kind=ExerciseKind.MIND_CLEAR,
    category="cognitive",
    description="Write down what's crowding your working memory and clear the mental cache.",
    stages=build_stages(require_trigger_log=False),
    mind_clear=MindClearDefaults(target_thoughts=5),
    instructions=(
        "Write down a task, worry, or decision floating in your head",
        "Categorize it: worry, task, memory, decision, other",
        "Each one you write down is cleared",
        "Notice how your mind feels lighter",
    ),
    tips=(
        "Your working memory can only hold a handful of items",
        "Writing them down frees that space up",
    ),
    copy={
        "cta_start": "Start Clearing",
        "cta_complete": "Mind Clear",
        "completion_message": "You offloaded your working memory. Your mind has room again.",
    },
)

# Trigger categories offered on the trigger log stage; opaque to the engine
DEFAULT_TRIGGER_CATEGORIES: tuple[str, ...] = (
    "work",
    "relationships",
    "health",
    "money",
    "social",
    "sleep",
    "news",
    "custom",
)

# Emotion families and the more specific words under each; opaque to the engine
EMOTION_FAMILIES: dict[str, tuple[str, ...]] = {
    "Anxious": ("Worried", "Nervous", "Overwhelmed", "Panicked", "Stressed", "Tense"),
    "Sad": ("Disappointed", "Lonely", "Hurt", "Discouraged", "Hopeless", "Down"),
    "Angry": ("Frustrated", "Irritated", "Resentful", "Bitter", "Furious", "Annoyed"),
    "Fearful": ("Scared", "Terrified", "Insecure", "Vulnerable", "Threatened", "Uneasy"),
    "Disgusted": ("Repelled", "Horrified", "Disapproving", "Judgmental", "Loathing", "Uncomfortable"),
    "Happy": ("Joyful", "Content", "Grateful", "Peaceful", "Excited", "Optimistic"),
    "Surprised": ("Amazed", "Confused", "Startled", "Shocked", "Dismayed", "Stunned"),
}

_REGISTRY: dict[str, ExerciseConfig] = {
    config.id: config
    for config in (
        CYCLIC_SIGH,
        BREATHING_4_7_8,
        GROUNDING_5_4_3_2_1,
        EMOTION_WHEEL,
        BRAIN_DUMP,
        MIND_CLEAR,
    )
}


def get_exercise_config(config_id: str) -> ExerciseConfig:
    """Look up an exercise config by id.

    Raises:
        ConfigError: If no exercise has that id
    """
    try:
        return _REGISTRY[config_id]
    except KeyError:
        raise ConfigError(
            f"Unknown exercise: {config_id}. Available: {', '.join(sorted(_REGISTRY))}"
        ) from None


def all_exercise_configs() -> list[ExerciseConfig]:
    return list(_REGISTRY.values())


def register_exercise_configs(configs: Iterable[ExerciseConfig]) -> None:
    """Add or replace exercise configs (e.g. ones loaded from YAML)."""
    for config in configs:
        _REGISTRY[config.id] = config
