"""
Multi-pass book analysis.

Pass 1 detects the chapter structure, pass 2 writes the initial summary with
that structure as context, pass 3 checks which chapters the summary covers,
and pass 4 (only when coverage is too low) summarises the missing chapters
and merges them in. Coverage is recomputed on the final summary.

If any pass raises, a single plain summary is generated instead. Only when
that also fails does the caller see an AnalysisError.
"""
import json
from typing import Any, Callable, Dict, List, Optional

from models.book import AnalysisResult, BookStructure, CoverageReport, TextLocation
from services.coverage_analyzer import analyze_coverage
from services.errors import AnalysisError
from services.gap_filler import GapFiller, STRUCTURED_SUMMARY_FORMAT
from services.logging_service import get_logger
from services.structure_detector import StructureDetector

FATAL_MESSAGE = "Unable to analyze the book. Please try again."


def build_initial_summary_prompt(structure: BookStructure, text: str) -> str:
    return f"""You are analyzing a book with the following structure:

{json.dumps(structure.to_dict(), indent=2, ensure_ascii=False)}

Your task is to create a comprehensive summary that covers ALL chapters and sections identified in the structure above. For each chapter, provide detailed analysis including:

1. Key principles and concepts
2. Practical applications and tactics
3. Real-world examples and case studies
4. Implementation strategies
5. Connections to other chapters

Make sure to reference specific chapters by name/number in your analysis.

Return the summary as a JSON object in this format:
{STRUCTURED_SUMMARY_FORMAT}

Book Text:
{text}"""


class MultiPassBookAnalyzer:
    def __init__(self, text: str, title: str, author: Optional[str] = None,
                 locations: Optional[List[TextLocation]] = None, model: Optional[str] = None,
                 llm=None, stage_listener: Optional[Callable[[str], None]] = None):
        """
        Args:
            text: full book text
            title/author: book metadata used in prompts
            locations: page/line/chapter offsets from text extraction, used for citations
            model: OpenRouter model override
            llm: completion client; defaults to OpenRouterService, created on first use
            stage_listener: called with the stage name as each pass starts
        """
        self.text = text
        self.title = title
        self.author = author
        self.locations = locations
        self.model = model
        self._llm = llm
        self.stage_listener = stage_listener

    @property
    def llm(self):
        if self._llm is None:
            from services.openrouter_service import OpenRouterService
            self._llm = OpenRouterService()
        return self._llm

    def _enter_stage(self, stage: str):
        get_logger().info(f"Multi-pass stage: {stage}")
        if self.stage_listener:
            self.stage_listener(stage)

    def analyze(self) -> AnalysisResult:
        logger = get_logger()
        logger.info("Starting multi-pass book analysis...", title=self.title)

        try:
            self._enter_stage("structure_detection")
            structure = self.analyze_book_structure()
            logger.info(f"Found {structure.total_chapters} chapters in book structure")

            self._enter_stage("initial_summary")
            initial_summary = self.generate_initial_summary(structure)

            self._enter_stage("coverage_analysis")
            coverage = analyze_coverage(structure, initial_summary)

            final_summary = initial_summary
            if coverage.needs_additional_pass:
                self._enter_stage("gap_fill")
                final_summary = self.fill_gaps(structure, initial_summary, coverage)
                logger.info("Gap filling completed")

            return AnalysisResult(
                structure=structure,
                summary=final_summary,
                coverage=analyze_coverage(structure, final_summary),
            )

        except Exception as e:
            logger.error(f"Multi-pass analysis failed: {e}")

        self._enter_stage("fallback_summary")
        try:
            fallback_summary = self.generate_fallback_summary()
        except Exception as e:
            logger.error(f"Fallback analysis also failed: {e}")
            raise AnalysisError(FATAL_MESSAGE) from e

        return AnalysisResult(
            structure=BookStructure.empty(self.title, self.author),
            summary=fallback_summary,
            coverage=CoverageReport(
                chapters_covered=[],
                chapters_missing=[],
                coverage_percentage=100,
                needs_additional_pass=False,
            ),
        )

    def analyze_book_structure(self) -> BookStructure:
        try:
            llm = self.llm
        except Exception as e:
            get_logger().error(f"Structure detection unavailable: {e}")
            return BookStructure.empty(self.title, self.author)
        return StructureDetector(llm, model=self.model).detect(self.text, self.title, self.author)

    def generate_initial_summary(self, structure: BookStructure) -> Dict[str, Any]:
        prompt = build_initial_summary_prompt(structure, self.text)
        return self.llm.generate_structured_summary(
            text=prompt,
            title=self.title,
            author=self.author,
            locations=self.locations,
            model=self.model,
            custom_prompt=prompt,
        )

    def fill_gaps(self, structure: BookStructure, summary: Dict[str, Any], coverage: CoverageReport) -> Dict[str, Any]:
        filler = GapFiller(self.text, self.llm, self.title, self.author, self.locations, self.model)
        return filler.fill_gaps(structure, summary, coverage.chapters_missing)

    def generate_fallback_summary(self) -> Dict[str, Any]:
        get_logger().info("Generating fallback summary...")
        return self.llm.generate_structured_summary(
            text=self.text,
            title=self.title,
            author=self.author,
            locations=self.locations,
            model=self.model,
        )


def analyze_book_with_multi_pass(text: str, title: str, author: Optional[str] = None,
                                 locations: Optional[List[TextLocation]] = None,
                                 model: Optional[str] = None, llm=None) -> AnalysisResult:
    return MultiPassBookAnalyzer(text, title, author, locations, model, llm=llm).analyze()
