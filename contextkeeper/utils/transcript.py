"""JSON transcripts: a list of ``{"role": ..., "parts": [...]}`` objects."""

import json
from pathlib import Path
from typing import List, Sequence, Union

from contextkeeper.agent.context.message import Message
from contextkeeper.exceptions import ContextValidationError, TranscriptFileError


def load_transcript(path: Union[str, Path]) -> List[Message]:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TranscriptFileError(
            f"Cannot read transcript: {e}", file_path=str(path), original_error=e
        ) from e
    except json.JSONDecodeError as e:
        raise TranscriptFileError(
            f"Transcript is not valid JSON: {e}", file_path=str(path), original_error=e
        ) from e

    if not isinstance(raw, list):
        raise TranscriptFileError(
            "Transcript must be a JSON list of messages", file_path=str(path)
        )
    try:
        return [Message.from_dict(item) for item in raw]
    except (AttributeError, KeyError, TypeError, ValueError, ContextValidationError) as e:
        raise TranscriptFileError(
            f"Malformed message in transcript: {e}", file_path=str(path), original_error=e
        ) from e


def save_transcript(messages: Sequence[Message], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps([msg.to_dict() for msg in messages], indent=2), encoding="utf-8"
    )
    return path
