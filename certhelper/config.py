"""Runtime settings read from the environment (and an optional .env file)."""
import os
from typing import Optional

import pydantic
from dotenv import load_dotenv
from pydantic import BaseModel

from certhelper.errors import ValidationError

__version__ = "0.1.0"


def _default_output_dir() -> str:
	data_home = os.getenv("XDG_DATA_HOME") or os.path.join(os.path.expanduser("~"), ".local", "share")
	return os.path.join(data_home, "cert-helper")


class Settings(BaseModel):
	output_dir: str
	log_level: str = "INFO"
	key_bits: int = 2048

	@classmethod
	def load(cls, env_file: Optional[str] = None) -> "Settings":
		load_dotenv(env_file)
		try:
			return cls(
				output_dir=os.getenv("CERT_HELPER_OUTPUT_DIR") or _default_output_dir(),
				log_level=os.getenv("CERT_HELPER_LOG_LEVEL", "INFO"),
				key_bits=os.getenv("CERT_HELPER_KEY_BITS", "2048"),
			)
		except pydantic.ValidationError as e:
			raise ValidationError(f"invalid settings: {e.errors()[0]['loc'][0]}") from e


__all__ = ["Settings", "__version__"]
