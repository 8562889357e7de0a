"""Classification mode presets.

Pure lookup table from ClassificationMode to the parameters the preprocessor
and ensemble classifier read on every cycle. Switching modes between cycles
never touches filter or smoothing state.
"""
from types import MappingProxyType
from typing import Mapping

from src.types import ClassificationMode, ModeSettings, PreprocessingProfile


MODE_SETTINGS: Mapping[ClassificationMode, ModeSettings] = MappingProxyType({
    ClassificationMode.BALANCED: ModeSettings(
        window_offsets=(0, 3900, 7800),
        ema_alpha=0.6,
        profile=PreprocessingProfile.FULL,
    ),
    ClassificationMode.SENSITIVE: ModeSettings(
        window_offsets=(0, 3900),
        ema_alpha=0.75,
        profile=PreprocessingProfile.REDUCED,
    ),
    ClassificationMode.RAW: ModeSettings(
        window_offsets=(0,),
        ema_alpha=1.0,
        profile=PreprocessingProfile.MINIMAL,
    ),
})


def get_mode_settings(mode: ClassificationMode) -> ModeSettings:
    return MODE_SETTINGS[mode]


def parse_mode(name: str | ClassificationMode) -> ClassificationMode:
    """Resolve a mode from its case-insensitive name.

    Args:
        name: Mode name such as 'balanced' or an existing ClassificationMode

    Returns:
        Matching ClassificationMode

    Raises:
        ValueError: If the name does not match any mode
    """
    if isinstance(name, ClassificationMode):
        return name
    try:
        return ClassificationMode[name.strip().upper()]
    except KeyError:
        valid = ', '.join(m.value for m in ClassificationMode)
        raise ValueError(f"Unknown classification mode: {name!r} (expected one of {valid})") from None
