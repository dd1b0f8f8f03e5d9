"""
MockHub Mock Files

YAML definitions of listeners and their mocks.

Example file:

    listeners:
      - port: 8080
        mocks:
          - uri: /users
            method: GET
            response:
              status_code: 200
              headers: {Content-Type: application/json}
              body: [{"id": 1}]
          - uri: /echo
            method: POST
            handler: myproject.mocks:echo
          - uri: /api
            proxy:
              target: http://localhost:9000
          - uri: /events
            chunks: ["data: ready\\n\\n"]
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .mock.entry import MockOptions


@dataclass
class MockDefinition:
    """One mock of a listener, with the chunks to pre-publish if it streams."""

    options: MockOptions
    chunks: List[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockDefinition':
        """Create MockDefinition from dictionary."""
        if not isinstance(data, dict):
            raise ValueError("mock definition must be a mapping")

        chunks = data.get('chunks') or []
        if not isinstance(chunks, list):
            raise ValueError("chunks must be a list")
        for chunk in chunks:
            if not isinstance(chunk, str):
                raise ValueError(f"chunks must be strings, got {chunk!r}")

        options = MockOptions.from_dict({k: v for k, v in data.items() if k != 'chunks'})
        if chunks and (options.kind != 'streaming' or options.method != 'GET'):
            raise ValueError(f"chunks are only allowed on GET streaming mocks ({options.method} {options.uri})")

        return cls(options=options, chunks=list(chunks))


@dataclass
class ListenerDefinition:
    """A port and the mocks it serves."""

    port: int
    mocks: List[MockDefinition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ListenerDefinition':
        if not isinstance(data, dict) or 'port' not in data:
            raise ValueError("listener definition requires a 'port'")

        return cls(
            port=int(data['port']),
            mocks=[MockDefinition.from_dict(m) for m in (data.get('mocks') or [])]
        )


@dataclass
class MockFile:
    """Parsed mock definition file."""

    listeners: List[ListenerDefinition] = field(default_factory=list)
    source: Optional[str] = None

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'MockFile':
        """
        Load a mock file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a valid mock definition
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Mock file not found: {yaml_path}")

        with open(path, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {yaml_path}: {e}") from e

        mock_file = cls.from_dict(data or {})
        mock_file.source = str(path)
        return mock_file

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockFile':
        """Create MockFile from dictionary."""
        if not isinstance(data, dict):
            raise ValueError("mock file must be a mapping with a 'listeners' list")

        listeners = data.get('listeners') or []
        if not isinstance(listeners, list):
            raise ValueError("'listeners' must be a list")

        return cls(listeners=[ListenerDefinition.from_dict(item) for item in listeners])

    @staticmethod
    def validate(data: Any) -> List[str]:
        """
        Check a raw mock file mapping and collect every problem found.

        Returns:
            Error messages (empty if the definition is valid)
        """
        errors = []
        if not isinstance(data, dict):
            return ["Mock file must be a mapping with a 'listeners' list"]

        listeners = data.get('listeners')
        if not isinstance(listeners, list) or not listeners:
            return ["Mock file has no 'listeners'"]

        seen = set()
        for i, listener in enumerate(listeners):
            if not isinstance(listener, dict) or 'port' not in listener:
                errors.append(f"Listener {i}: Missing 'port' field")
                continue

            port = listener['port']
            try:
                int(port)
            except (TypeError, ValueError):
                errors.append(f"Listener {i}: Invalid port {port!r}")
                continue

            for j, mock in enumerate(listener.get('mocks') or []):
                try:
                    definition = MockDefinition.from_dict(mock)
                except ValueError as e:
                    errors.append(f"Listener {port}, mock {j}: {e}")
                    continue

                key = (port, definition.options.uri, definition.options.method)
                if key in seen:
                    errors.append(
                        f"Listener {port}, mock {j}: Duplicate {definition.options.method} {definition.options.uri}"
                    )
                seen.add(key)

        return errors

    @property
    def mock_count(self) -> int:
        return sum(len(listener.mocks) for listener in self.listeners)
