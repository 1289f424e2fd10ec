from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


@dataclass(frozen=True)
class Chapter:
    title: str
    number: Optional[str] = None
    page_range: Optional[str] = None
    subsections: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Chapter"]:
        title = str(data.get("title") or "").strip()
        if not title:
            return None
        number = data.get("number")
        subsections = data.get("subsections") or []
        return cls(
            title=title,
            number=str(number).strip() if number not in (None, "") else None,
            page_range=data.get("pageRange") or None,
            subsections=[str(s) for s in subsections if s] if isinstance(subsections, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"title": self.title}
        if self.number is not None:
            data["number"] = self.number
        if self.page_range:
            data["pageRange"] = self.page_range
        data["subsections"] = list(self.subsections)
        return data


@dataclass(frozen=True)
class BookStructure:
    title: str
    author: Optional[str] = None
    chapters: List[Chapter] = field(default_factory=list)
    total_chapters: int = 0
    has_table_of_contents: bool = False

    @classmethod
    def empty(cls, title: str, author: Optional[str] = None) -> "BookStructure":
        return cls(title=title, author=author)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "chapters": [ch.to_dict() for ch in self.chapters],
            "totalChapters": self.total_chapters,
            "hasTableOfContents": self.has_table_of_contents,
        }


@dataclass
class CoverageReport:
    chapters_covered: List[str] = field(default_factory=list)
    chapters_missing: List[str] = field(default_factory=list)
    coverage_percentage: int = 100
    needs_additional_pass: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chaptersCovered": list(self.chapters_covered),
            "chaptersMissing": list(self.chapters_missing),
            "coveragePercentage": self.coverage_percentage,
            "needsAdditionalPass": self.needs_additional_pass,
        }


@dataclass
class AnalysisResult:
    structure: BookStructure
    summary: Dict[str, Any]
    coverage: CoverageReport

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structure": self.structure.to_dict(),
            "summary": self.summary,
            "coverage": self.coverage.to_dict(),
        }


@dataclass
class TextLocation:
    start: int
    end: int
    page: Optional[int] = None
    line: Optional[int] = None
    chapter: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"start": self.start, "end": self.end}
        for key in ("page", "line", "chapter"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class ExtractedText:
    text: str
    locations: List[TextLocation] = field(default_factory=list)


@dataclass
class Gap:
    id: str
    type: str
    severity: str
    title: str
    section: str
    description: str = ""
    current_value: Optional[str] = None
    suggested_length: Optional[int] = None
    book_context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "section": self.section,
        }
        if self.current_value is not None:
            data["currentValue"] = self.current_value
        if self.suggested_length is not None:
            data["suggestedLength"] = self.suggested_length
        if self.book_context is not None:
            data["bookContext"] = self.book_context
        return data


@dataclass
class GapReport:
    gaps: List[Gap] = field(default_factory=list)
    gaps_by_severity: Dict[str, int] = field(default_factory=lambda: {"high": 0, "medium": 0, "low": 0})
    recommendations: List[str] = field(default_factory=list)
    estimated_enhancement_time: int = 0

    @property
    def total_gaps(self) -> int:
        return len(self.gaps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalGaps": self.total_gaps,
            "gapsBySeverity": dict(self.gaps_by_severity),
            "gaps": [g.to_dict() for g in self.gaps],
            "recommendations": list(self.recommendations),
            "estimatedEnhancementTime": self.estimated_enhancement_time,
        }


@dataclass
class EnhancementChange:
    gap_id: str
    type: str
    section: str
    title: str
    enhanced: str
    action: str
    original: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "gapId": self.gap_id,
            "type": self.type,
            "section": self.section,
            "title": self.title,
            "enhanced": self.enhanced,
            "action": self.action,
        }
        if self.original is not None:
            data["original"] = self.original
        return data
