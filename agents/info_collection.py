"""
Information collection agent.

Collects the facts needed for a profile page over at most two rounds:
the first message gets an introduction, later messages are analysed (links
through tools, plain text through a single extraction call), and once the
profile is complete enough, or the rounds run out, the collected data is
structured into the final profile handed to the next agent.

Round counter and collected data live in
session["metadata"]["info_collection"].
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from agents.base_agent import BaseAgent
from agents.llm_client import LLMClient, Tool
from agents.prompt_template import (
    INFO_COLLECTION_INTRO,
    INFO_COLLECTION_SYSTEM,
    STRUCTURING_PROMPT,
    TEXT_EXTRACTION_PROMPT,
)
from integrations import web
from integrations.github import GitHubClient, parse_username
from models.data_models import AgentResponse
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

URL_RE = re.compile(r"https?://\S+")
JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")

DEFAULT_ROLE = "professional"
DEFAULT_USE_CASE = "personal showcase"

COLLECTION_PRIORITIES = {
    "developer": ["GitHub", "tech blog", "resume", "open source projects"],
    "frontend engineer": ["GitHub", "portfolio", "tech blog", "project experience"],
    "designer": ["portfolio", "Behance", "Dribbble", "resume"],
    "product manager": ["LinkedIn", "case studies", "resume", "results"],
}
DEFAULT_PRIORITY = ["resume", "portfolio", "professional profile", "skills"]

SKILL_KEYS = ("technical", "soft", "languages", "certifications")


def detect_links(text: str) -> List[str]:
    return URL_RE.findall(text or "")


def parse_json_block(text: str) -> Optional[Dict[str, Any]]:
    """First {...} span of a model reply parsed as JSON, or None."""
    match = JSON_BLOCK_RE.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _non_empty(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in (d or {}).items() if v not in (None, "", [], {})}


def merge_collected(collected: Dict[str, Any], extracted: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge newly extracted info into what was collected so far.

    Profile, experience and online presence are merged key by key (empty
    values never overwrite); skill lists are concatenated without duplicates.
    """
    merged = dict(collected)

    for key in ("basic_profile", "experience", "online_presence", "achievements"):
        if extracted.get(key):
            merged[key] = {**merged.get(key, {}), **_non_empty(extracted[key])}

    if extracted.get("skills"):
        skills = dict(merged.get("skills", {}))
        for key in SKILL_KEYS:
            combined = list(skills.get(key, []))
            for item in extracted["skills"].get(key) or []:
                if item not in combined:
                    combined.append(item)
            skills[key] = combined
        merged["skills"] = skills

    return merged


def assess_completeness(collected: Dict[str, Any], current_round: int) -> Dict[str, Any]:
    """
    Score the collected data on four dimensions: basic info (name and
    title), skills, experience, online presence.

    More info is needed when the score is under the round's threshold
    (0.5 in round 1, 0.3 afterwards) and something is actually missing.
    """
    profile = collected.get("basic_profile") or {}
    skills = collected.get("skills") or {}
    experience = collected.get("experience") or {}
    online = collected.get("online_presence") or {}

    has_basic = bool(profile.get("name") and profile.get("title"))
    has_skills = bool(skills.get("technical") or skills.get("soft"))
    has_experience = bool(experience.get("work_history") or experience.get("projects"))
    has_online = bool(online.get("github_url") or online.get("linkedin_url"))

    dimensions = [has_basic, has_skills, has_experience, has_online]
    score = sum(dimensions) / len(dimensions)

    missing_areas, questions = [], []
    if not has_basic:
        missing_areas.append("basic info")
        questions.append("Could you tell me your name and current role?")
    if not has_skills:
        missing_areas.append("skills")
        questions.append("What are the skills or specialities you are strongest in?")
    if not has_experience:
        missing_areas.append("experience")
        questions.append("Could you briefly describe your work history or a project you are proud of?")

    threshold = 0.5 if current_round == 1 else 0.3
    return {
        "score": score,
        "needs_more_info": score < threshold and bool(missing_areas),
        "missing_areas": missing_areas,
        "specific_questions": questions,
    }


def supplementary_prompt(assessment: Dict[str, Any]) -> str:
    questions = assessment["specific_questions"][:2]
    numbered = "\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions))
    return (
        "To round out your profile I'd like a few more details:\n\n"
        f"{numbered}\n\n"
        "Feel free to answer these or share any other material."
    )


def extract_from_tool_results(tool_results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Turn GitHub / website / LinkedIn tool outputs into profile fields."""
    extracted: Dict[str, Any] = {
        "basic_profile": {},
        "skills": {key: [] for key in SKILL_KEYS},
        "experience": {"work_history": [], "projects": []},
        "online_presence": {"portfolio_links": []},
    }

    for entry in tool_results:
        output = entry.get("result") or {}
        if not isinstance(output, dict) or output.get("error") and not output.get("fallback"):
            continue
        name = entry.get("tool_name")

        if name == "analyze_github" and output.get("username"):
            profile = output.get("profile") or {}
            extracted["basic_profile"]["name"] = profile.get("name") or output["username"]
            extracted["basic_profile"]["bio"] = profile.get("bio")
            extracted["basic_profile"]["location"] = profile.get("location")
            extracted["online_presence"]["github_url"] = f"https://github.com/{output['username']}"
            summary = (output.get("languages") or {}).get("summary") or []
            extracted["skills"]["technical"] = [lang for lang, _ in summary]
            extracted["experience"]["projects"] = [
                {
                    "name": repo.get("name"),
                    "description": repo.get("description") or "",
                    "technologies": [repo["language"]] if repo.get("language") else [],
                    "url": repo.get("html_url"),
                }
                for repo in (output.get("repositories") or [])[:5]
            ]
        elif name == "scrape_webpage" and output.get("url"):
            extracted["online_presence"]["website_url"] = output["url"]
            if output.get("description") and not extracted["basic_profile"].get("bio"):
                extracted["basic_profile"]["bio"] = output["description"]
        elif name == "extract_linkedin" and output.get("profile_url"):
            extracted["online_presence"]["linkedin_url"] = output["profile_url"]
            if output.get("name"):
                extracted["basic_profile"]["name"] = output["name"]
            if output.get("summary"):
                extracted["basic_profile"]["bio"] = output["summary"]

    return extracted


def tool_confidence(tool_results: List[Dict[str, Any]]) -> float:
    if not tool_results:
        return 0.5
    return min(0.9, 0.6 + 0.1 * len(tool_results))


def summarize_tool_results(tool_results: List[Dict[str, Any]]) -> str:
    parts = []
    for entry in tool_results:
        output = entry.get("result") or {}
        if not isinstance(output, dict):
            continue
        if entry.get("tool_name") == "analyze_github" and output.get("username"):
            parts.append(f"analysed your GitHub profile and found {len(output.get('repositories') or [])} projects")
        elif entry.get("tool_name") == "scrape_webpage" and output.get("title"):
            parts.append(f"read your website: {output['title']}")
        elif entry.get("tool_name") == "extract_linkedin" and output.get("profile_url"):
            parts.append("noted your LinkedIn profile")
    if not parts:
        return "I've finished analysing the information you shared."
    summary = ", ".join(parts)
    return f"I {summary}."


class InfoCollectionAgent(BaseAgent):
    """Collects profile information from links, documents and free text."""

    max_rounds = 2

    def __init__(self, llm_client: LLMClient, github: Optional[GitHubClient] = None):
        super().__init__("Information Collection Agent", "info_collection", llm_client)
        self.github = github or GitHubClient()

    # Tools

    def _analyze_github(self, username_or_url: str, include_repos: bool = True) -> Dict[str, Any]:
        try:
            return self.github.analyze_user(username_or_url, include_repos=include_repos)
        except Exception as e:
            logger.warning(f"GitHub analysis failed for {username_or_url}: {e}")
            try:
                username = parse_username(username_or_url)
            except ValueError:
                username = None
            return {"username": username, "profile": {}, "repositories": [], "fallback": True, "error": str(e)}

    def _scrape_webpage(self, url: str, target_sections: Optional[List[str]] = None) -> Dict[str, Any]:
        try:
            return web.scrape_webpage(url, target_sections or ["all"])
        except Exception as e:
            logger.warning(f"Scraping failed for {url}: {e}")
            return {"url": url, "title": url, "description": None, "fallback": True, "error": str(e)}

    def _extract_linkedin(self, profile_url: str) -> Dict[str, Any]:
        try:
            return web.extract_linkedin(profile_url)
        except Exception as e:
            logger.warning(f"LinkedIn extraction failed for {profile_url}: {e}")
            return {"profile_url": profile_url, "name": None, "fallback": True, "error": str(e)}

    def get_tools(self) -> Dict[str, Tool]:
        tools = [
            Tool(
                name="analyze_github",
                description="Analyse a GitHub user: profile, top repositories, languages and stars.",
                parameters={
                    "type": "object",
                    "properties": {
                        "username_or_url": {"type": "string", "description": "GitHub username or profile URL"},
                        "include_repos": {"type": "boolean", "description": "Include repository analysis"},
                    },
                    "required": ["username_or_url"],
                },
                execute=self._analyze_github,
            ),
            Tool(
                name="scrape_webpage",
                description="Read a personal website or portfolio page: title, description, headings, links.",
                parameters={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "description": "Page URL"},
                        "target_sections": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Sections of interest, e.g. ['about', 'projects'] or ['all']",
                        },
                    },
                    "required": ["url"],
                },
                execute=self._scrape_webpage,
            ),
            Tool(
                name="extract_linkedin",
                description="Extract what is available from a LinkedIn profile URL.",
                parameters={
                    "type": "object",
                    "properties": {"profile_url": {"type": "string", "description": "LinkedIn profile URL"}},
                    "required": ["profile_url"],
                },
                execute=self._extract_linkedin,
            ),
        ]
        return {tool.name: tool for tool in tools}

    # State

    @staticmethod
    def _state(session: Dict[str, Any]) -> Dict[str, Any]:
        metadata = session.setdefault("metadata", {})
        return metadata.setdefault("info_collection", {"round": 0, "collected_data": {}})

    @staticmethod
    def _welcome(context: Optional[Dict[str, Any]]) -> Dict[str, str]:
        welcome = (context or {}).get("welcome_data") or {}
        return {
            "user_role": welcome.get("user_role") or DEFAULT_ROLE,
            "use_case": welcome.get("use_case") or DEFAULT_USE_CASE,
        }

    # Flow

    def process(
        self,
        user_input: str,
        session: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Iterator[AgentResponse]:
        state = self._state(session)
        try:
            if state["round"] == 0:
                yield self._intro(state, context)
                return

            yield self.create_thinking_response(
                f"🔍 Analysing what you shared (round {state['round']})...",
                20 + (state["round"] - 1) * 30,
            )
            analysis = self.analyze_input(user_input, session, context)
            state["collected_data"] = merge_collected(state["collected_data"], analysis["extracted_info"])
            assessment = assess_completeness(state["collected_data"], state["round"])
            logger.info(
                f"Completeness {assessment['score']:.2f} in round {state['round']} "
                f"(needs more: {assessment['needs_more_info']})"
            )

            if assessment["needs_more_info"] and state["round"] < self.max_rounds:
                state["round"] += 1
                reply = f"✅ {analysis['summary']}\n\n{supplementary_prompt(assessment)}"
                self.update_conversation_history(session, user_input, reply)
                yield self.create_response(
                    reply,
                    intent="awaiting_supplementary_input",
                    progress=50,
                    current_stage=f"awaiting_supplementary_input_round_{state['round']}",
                    metadata={
                        "round": state["round"],
                        "completeness_score": assessment["score"],
                        "missing_areas": assessment["missing_areas"],
                    },
                )
            else:
                self.update_conversation_history(session, user_input, analysis["summary"])
                yield from self.finalize(state, context)
        except Exception as e:
            logger.error(f"Information collection failed: {e}")
            yield self.create_response(
                "Sorry, I had trouble analysing that. Could you describe your background in a few sentences instead?",
                intent="error_recovery",
                metadata={"error": str(e), "round": state.get("round")},
            )

    def _intro(self, state: Dict[str, Any], context: Optional[Dict[str, Any]]) -> AgentResponse:
        welcome = self._welcome(context)
        state["round"] = 1
        return self.create_response(
            INFO_COLLECTION_INTRO.format(**welcome),
            intent="awaiting_user_input",
            progress=10,
            current_stage="awaiting_user_materials",
            metadata={"round": 1, "max_rounds": self.max_rounds, **welcome},
        )

    def analyze_input(
        self,
        user_input: str,
        session: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Analyse one message.

        Plain text (no links, no parsed documents) goes through one
        extraction prompt; anything else runs the tool loop.

        Returns:
            Dict with summary, tool_results, extracted_info, confidence
        """
        links = detect_links(user_input)
        documents = (context or {}).get("parsed_documents") or []
        welcome = self._welcome(context)
        logger.info(f"Analysing input: {len(links)} link(s), {len(documents)} document(s)")

        if not links and not documents:
            return self.extract_from_text(user_input, welcome)

        priorities = COLLECTION_PRIORITIES.get(welcome["user_role"].lower(), DEFAULT_PRIORITY)
        system_prompt = INFO_COLLECTION_SYSTEM.format(priority_sources=", ".join(priorities), **welcome)
        if documents:
            names = ", ".join(doc.get("file_name", "document") for doc in documents)
            system_prompt += f"\n\nThe user also uploaded: {names}"

        result = self.execute_multi_step(user_input, session, system_prompt, max_steps=4)
        return {
            "summary": result.text or summarize_tool_results(result.tool_results),
            "tool_results": result.tool_results,
            "extracted_info": extract_from_tool_results(result.tool_results),
            "confidence": tool_confidence(result.tool_results),
        }

    def extract_from_text(self, user_input: str, welcome: Dict[str, str]) -> Dict[str, Any]:
        reply = self.llm.send_prompt(TEXT_EXTRACTION_PROMPT.format(user_input=user_input, **welcome))
        parsed = parse_json_block(reply)
        if parsed is None:
            extracted = {"basic_profile": {"bio": reply[:200]}}
            summary = reply
        else:
            extracted = parsed
            summary = reply[:reply.find("{")].strip() or "I've noted the details you shared."
        return {"summary": summary, "tool_results": [], "extracted_info": extracted, "confidence": 0.6}

    def finalize(self, state: Dict[str, Any], context: Optional[Dict[str, Any]]) -> Iterator[AgentResponse]:
        yield self.create_thinking_response("🎯 Organising and structuring your information...", 80)

        profile = self.structure_collected_info(state, context)
        state["completed"] = True
        yield self.create_response(
            "🎉 All done! I've organised your profile: background, skills and highlights. "
            "Next I'll start designing your page...",
            intent="collection_complete",
            done=True,
            progress=100,
            current_stage="collection_complete",
            next_agent="prompt_generation_agent",
            metadata={
                "collected_user_info": profile,
                "total_rounds": state["round"],
                "data_sources": profile["metadata"]["data_sources"],
                "confidence_score": profile["metadata"]["confidence_score"],
            },
        )

    def structure_collected_info(self, state: Dict[str, Any], context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        collected = state["collected_data"]
        welcome = self._welcome(context)
        documents = "\n\n".join(
            f"Document: {doc.get('file_name', 'document')}\nContent: {doc.get('content', '')}"
            for doc in (context or {}).get("parsed_documents") or []
        )
        reply = self.llm.send_prompt(STRUCTURING_PROMPT.format(
            collected_data=json.dumps(collected, indent=2, ensure_ascii=False),
            documents=documents or "(none)",
            **welcome,
        ))

        profile = parse_json_block(reply)
        if profile is None:
            logger.warning("Could not parse structured profile, using collected data")
            profile = {
                "basic_profile": collected.get("basic_profile", {}),
                "skills": collected.get("skills", {key: [] for key in SKILL_KEYS}),
                "experience": collected.get("experience", {"work_history": [], "projects": []}),
                "achievements": collected.get("achievements", {}),
                "online_presence": collected.get("online_presence", {"portfolio_links": []}),
            }

        profile["metadata"] = {
            "data_sources": self.data_sources(collected),
            "confidence_score": self.overall_confidence(collected),
            "collection_rounds": state["round"],
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        return profile

    @staticmethod
    def data_sources(collected: Dict[str, Any]) -> List[str]:
        online = collected.get("online_presence") or {}
        sources = []
        if online.get("github_url"):
            sources.append("GitHub")
        if online.get("linkedin_url"):
            sources.append("LinkedIn")
        if online.get("website_url"):
            sources.append("Website")
        sources.append("Conversation")
        return sources

    @staticmethod
    def overall_confidence(collected: Dict[str, Any]) -> float:
        profile = collected.get("basic_profile") or {}
        points = [
            bool(profile.get("name")),
            bool(profile.get("title")),
            bool((collected.get("skills") or {}).get("technical")),
            bool((collected.get("experience") or {}).get("projects")),
            bool((collected.get("online_presence") or {}).get("github_url")),
        ]
        return sum(points) / len(points)
