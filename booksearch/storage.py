"""File persistence for favorites and notes."""
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

from booksearch.models import Note

logger = logging.getLogger(__name__)


class LibraryStorage:
    """Favorites as a line-per-key text file, notes as a JSON object."""

    FAVORITES_FILE = "favorites.txt"
    NOTES_FILE = "notes.json"

    def __init__(self, data_dir: Union[str, Path] = "data"):
        """
        Args:
            data_dir: Directory holding favorites.txt and notes.json
        """
        self.data_dir = Path(data_dir)
        self.favorites_path = self.data_dir / self.FAVORITES_FILE
        self.notes_path = self.data_dir / self.NOTES_FILE

    def load(self) -> Tuple[List[str], Dict[str, Note]]:
        """
        Load favorites and notes.

        Missing files give empty collections; a malformed notes file is
        logged and treated as empty.
        """
        return self.load_favorites(), self.load_notes()

    def load_favorites(self) -> List[str]:
        if not self.favorites_path.exists():
            logger.warning(f"No favorites at {self.favorites_path}, starting with none")
            return []

        favorites = []
        with self.favorites_path.open("r", encoding="utf-8") as f:
            for line in f:
                key = line.strip()
                if key and key not in favorites:
                    favorites.append(key)
        logger.info(f"Loaded {len(favorites)} favorites")
        return favorites

    def load_notes(self) -> Dict[str, Note]:
        if not self.notes_path.exists():
            logger.warning(f"No notes at {self.notes_path}, starting with none")
            return {}

        try:
            with self.notes_path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading notes from {self.notes_path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.error(f"Notes file {self.notes_path} is not a JSON object")
            return {}

        notes = {}
        for key, entry in raw.items():
            if not isinstance(entry, dict):
                continue
            notes[key] = Note(note=str(entry.get("note", "")), date=str(entry.get("date", "")))
        logger.info(f"Loaded {len(notes)} notes")
        return notes

    def save(self, favorites: Iterable[str], notes: Dict[str, Note]):
        """
        Overwrite both files with the given state.

        Both files are written to temporary siblings first and only renamed
        into place once both writes succeeded, so a failed save leaves the
        previous files untouched.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        favorites = list(favorites)
        favorites_tmp = self.favorites_path.with_name(self.favorites_path.name + ".tmp")
        notes_tmp = self.notes_path.with_name(self.notes_path.name + ".tmp")

        try:
            with favorites_tmp.open("w", encoding="utf-8") as f:
                for key in favorites:
                    f.write(f"{key}\n")

            with notes_tmp.open("w", encoding="utf-8") as f:
                json.dump({key: note.to_dict() for key, note in notes.items()}, f, indent=4, ensure_ascii=False)

            favorites_tmp.replace(self.favorites_path)
            notes_tmp.replace(self.notes_path)
        except OSError as e:
            logger.error(f"Error saving to {self.data_dir}: {e}")
            raise
        finally:
            favorites_tmp.unlink(missing_ok=True)
            notes_tmp.unlink(missing_ok=True)

        logger.info(f"Saved {len(favorites)} favorites and {len(notes)} notes to {self.data_dir}")
