#!/usr/bin/env python3
# Example usage of embedded_dict_file

from embedded_dict_file import DictionaryFile, StrDictionaryFile, SerializationSettings, INT, JSON
from rich.console import Console

_console = Console()

def progress_printer(evt):
    phase = evt.get("phase", "")
    pct = int(evt.get("pct", 0))
    msg = evt.get("msg", "")
    parts = [p for p in (phase, f"{pct}%", (f"- {msg}" if msg else "")) if p]
    _console.print("[progress] " + " ".join(parts), highlight=False)

def main() -> None:
    # Plain string map, written through on every change
    with StrDictionaryFile("demo.tsv", on_progress=progress_printer) as names:
        names["alice"] = "Alice Liddell"
        names.setdefault("bob", "Bob")
        for key, value in names.items():
            _console.print(f"{key} -> {value}")

    # Typed map: int keys, JSON values, buffered until close()
    settings = SerializationSettings(key=INT, value=JSON)
    with DictionaryFile("users.tsv", settings, autoflush=False) as users:
        users[1] = {"name": "Alice", "age": 33}
        users[2] = {"name": "Bob", "age": 17}
        adults = [u["name"] for u in users.values() if u["age"] >= 18]
        _console.print("Adults:", adults)
        users.remove(2)

if __name__ == "__main__":
    main()
