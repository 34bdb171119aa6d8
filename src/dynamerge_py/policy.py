from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AllExcept:
    paths: frozenset[str] = frozenset()


@dataclass(frozen=True)
class OnlyPaths:
    paths: frozenset[str] = frozenset()


type IncludeMode = AllExcept | OnlyPaths


@dataclass(frozen=True)
class Policy:
    include: IncludeMode = field(default_factory=AllExcept)
    exclude: frozenset[str] = frozenset()
    insert_only: frozenset[str] = frozenset()
    write_nulls: bool = False

    @staticmethod
    def all(*, insert_only: Iterable[str] = (), write_nulls: bool = False) -> Policy:
        return Policy(insert_only=frozenset(insert_only), write_nulls=write_nulls)

    @staticmethod
    def only(*paths: str, insert_only: Iterable[str] = (), write_nulls: bool = False) -> Policy:
        return Policy(
            include=OnlyPaths(frozenset(paths)),
            insert_only=frozenset(insert_only),
            write_nulls=write_nulls,
        )

    @staticmethod
    def excluding(*paths: str, insert_only: Iterable[str] = (), write_nulls: bool = False) -> Policy:
        return Policy(
            exclude=frozenset(paths),
            insert_only=frozenset(insert_only),
            write_nulls=write_nulls,
        )

    def with_insert_only(self, paths: Iterable[str]) -> Policy:
        return Policy(
            include=self.include,
            exclude=self.exclude,
            insert_only=self.insert_only | frozenset(paths),
            write_nulls=self.write_nulls,
        )

    def includes(self, path: str) -> bool:
        if isinstance(self.include, OnlyPaths):
            return path in self.include.paths
        return path not in self.include.paths
