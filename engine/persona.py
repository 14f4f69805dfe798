from dataclasses import dataclass
from typing import Optional, Union

from .nodes import VoiceSettings


@dataclass(frozen=True)
class Persona:
    """Definition of the agent persona used for voice and style."""
    name: str
    voice: Union[str, int]
    tone: Optional[str] = None
    speed: Optional[float] = None
    interruption_threshold: Optional[int] = None

    def system_prompt(self) -> str:
        """Return a prompt preamble describing this persona."""
        desc = [f"You are {self.name}."]
        if self.tone:
            desc.append(f"Your tone is {self.tone}.")
        return " ".join(desc)

    def voice_settings(self) -> VoiceSettings:
        return VoiceSettings(
            voice_id=self.voice,
            speed=self.speed,
            interruption_threshold=self.interruption_threshold,
            reduce_latency=True,
        )

__all__ = ["Persona"]
