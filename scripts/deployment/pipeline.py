"""
Deployment pipeline data model
Steps, references between steps, and the ledger of completed steps
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import UnresolvedReference
from .networks import NetworkProfile


@dataclass(frozen=True)
class Ref:
    """Placeholder for the address produced by an earlier Construct step (1-based index)"""
    step: int


@dataclass(frozen=True)
class Address:
    """An account address literal; `role` names it in validation errors"""
    value: str
    role: str = "address"


@dataclass(frozen=True)
class Construct:
    kind: str
    args: Tuple[Any, ...] = ()

    def references(self) -> List[int]:
        return [arg.step for arg in self.args if isinstance(arg, Ref)]

    def describe(self) -> str:
        return f"deploy {self.kind}"


@dataclass(frozen=True)
class Invoke:
    target: int
    method: str
    args: Tuple[Any, ...] = ()

    def references(self) -> List[int]:
        return [self.target] + [arg.step for arg in self.args if isinstance(arg, Ref)]

    def describe(self) -> str:
        return f"call {self.method} on step {self.target}"


Step = Union[Construct, Invoke]


@dataclass(frozen=True)
class ComponentHandle:
    """A deployed contract: its address never changes after construction"""
    kind: str
    address: str
    profile: NetworkProfile
    step_index: int
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class InvokeOutcome:
    """Success marker for a completed Invoke step; failed steps raise StepFailed instead"""
    step_index: int
    target: ComponentHandle
    method: str
    tx_hash: Optional[str] = None


Outcome = Union[ComponentHandle, InvokeOutcome]


class Pipeline:
    """Immutable, ordered sequence of deployment steps"""

    def __init__(self, steps: Sequence[Step]):
        self._steps: Tuple[Step, ...] = tuple(steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Tuple[int, Step]]:
        return iter(enumerate(self._steps, start=1))

    def step(self, index: int) -> Step:
        if not 1 <= index <= len(self._steps):
            raise IndexError(f"Pipeline has no step {index}")
        return self._steps[index - 1]

    def validate(self) -> "Pipeline":
        """
        Check that every reference names an earlier Construct step

        Raises:
            UnresolvedReference: on a forward, self, missing or non-address reference
        """
        for index, step in self:
            for ref in step.references():
                if ref < 1 or ref > len(self._steps):
                    raise UnresolvedReference(index, ref, "does not exist")
                if ref >= index:
                    raise UnresolvedReference(index, ref, "does not run before it")
                if not isinstance(self._steps[ref - 1], Construct):
                    raise UnresolvedReference(index, ref, "does not produce an address")
        return self

    def address_literals(self) -> Iterator[Tuple[int, Address]]:
        for index, step in self:
            for arg in step.args:
                if isinstance(arg, Address):
                    yield index, arg


class RunResult:
    """Ledger of completed steps, filled strictly in pipeline order"""

    def __init__(self):
        self._entries: Dict[int, Outcome] = {}

    def record(self, index: int, outcome: Outcome):
        if self._entries and index <= max(self._entries):
            raise ValueError(f"Step {index} recorded out of order")
        self._entries[index] = outcome

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, index) -> bool:
        return index in self._entries

    def __getitem__(self, index: int) -> Outcome:
        return self._entries[index]

    def items(self):
        return self._entries.items()

    def get(self, index: int) -> Optional[Outcome]:
        return self._entries.get(index)

    @property
    def handles(self) -> Dict[str, ComponentHandle]:
        """Deployed handles keyed by component kind"""
        return {o.kind: o for o in self._entries.values() if isinstance(o, ComponentHandle)}

    def handle(self, kind: str) -> ComponentHandle:
        try:
            return self.handles[kind]
        except KeyError:
            raise KeyError(f"No {kind} was deployed in this run") from None

    @property
    def transactions(self) -> List[str]:
        return [o.tx_hash for o in self._entries.values() if o.tx_hash]
