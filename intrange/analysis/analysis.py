from __future__ import annotations

from typing import TYPE_CHECKING, Type, TypeVar

if TYPE_CHECKING:
    from intrange.ir.function import IRFunction


class IRAnalysis:
    """
    Per-function fact computed over the IR, e.g. the CFG or the back edges.
    Subclasses fill in `analyze`.
    """

    function: IRFunction
    analyses_cache: IRAnalysesCache

    def __init__(self, analyses_cache: IRAnalysesCache, function: IRFunction):
        self.analyses_cache = analyses_cache
        self.function = function

    def analyze(self):
        raise NotImplementedError


T = TypeVar("T", bound=IRAnalysis)


class IRAnalysesCache:
    """
    Analyses of one function, keyed by their class. An analysis may request
    the ones it depends on through the cache it was created with.
    """

    function: IRFunction
    analyses_cache: dict[Type[IRAnalysis], IRAnalysis]

    def __init__(self, function: IRFunction):
        self.analyses_cache = {}
        self.function = function

    def request_analysis(self, analysis_cls: Type[T]) -> T:
        """
        Return the cached result of `analysis_cls`, running it first if
        needed.
        """
        assert issubclass(analysis_cls, IRAnalysis), f"{analysis_cls} is not an IRAnalysis"
        if analysis_cls in self.analyses_cache:
            ret = self.analyses_cache[analysis_cls]
            assert isinstance(ret, analysis_cls)  # help mypy
            return ret

        analysis = analysis_cls(self, self.function)
        self.analyses_cache[analysis_cls] = analysis
        analysis.analyze()

        return analysis

    def force_analysis(self, analysis_cls: Type[T]) -> T:
        """
        Rerun `analysis_cls` and replace its cached result. Analyses it
        depends on are reused from the cache.
        """
        self.analyses_cache.pop(analysis_cls, None)
        return self.request_analysis(analysis_cls)
