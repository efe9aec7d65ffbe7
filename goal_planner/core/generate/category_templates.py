from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from goal_planner.core.model import Goal, GoalCategory


@dataclass(frozen=True)
class CategoryProfile:
    default_horizon_days: int
    weeks_per_phase: int
    average_task_minutes: int
    duration_ladder: tuple[int, ...]  # descending


@dataclass(frozen=True)
class PhaseTemplate:
    title: str
    description: str
    tasks: tuple[str, ...]


CATEGORY_PROFILES: dict[GoalCategory, CategoryProfile] = {
    "career": CategoryProfile(90, 3, 60, (90, 60, 45, 30)),
    "health": CategoryProfile(90, 3, 30, (60, 45, 30, 20)),
    "education": CategoryProfile(120, 4, 60, (90, 60, 45, 30)),
    "finance": CategoryProfile(90, 4, 30, (60, 45, 30, 20)),
    "personal": CategoryProfile(90, 3, 30, (45, 30, 20)),
    "fitness": CategoryProfile(84, 3, 45, (60, 45, 30, 20)),
    "creativity": CategoryProfile(90, 3, 60, (90, 60, 45)),
    "relationships": CategoryProfile(60, 3, 45, (60, 45, 30, 20)),
}


def _phase(title: str, description: str, *tasks: str) -> PhaseTemplate:
    return PhaseTemplate(title=title, description=description, tasks=tuple(tasks))


DEFAULT_TEMPLATES: dict[str, list[PhaseTemplate]] = {
    "career": [
        _phase("Assessment", "Clarify where you are and where you want to go",
               "Define career objectives", "Identify skill gaps", "Research industry trends"),
        _phase("Skill Building", "Close the most important gaps",
               "Take online course/training", "Practice new skills", "Seek feedback from mentor"),
        _phase("Advancement", "Take visible action toward the goal",
               "Work on visibility project", "Network with leaders", "Document achievements"),
    ],
    "health": [
        _phase("Awareness", "Understand your health baseline",
               "Schedule health checkup", "Start health journal", "Research health best practices"),
        _phase("Habit Formation", "Build healthy habits",
               "Morning wellness routine", "Healthy meal preparation", "Evening wind-down routine"),
        _phase("Optimization", "Fine-tune your health practices",
               "Review and adjust routines", "Try new healthy activity", "Track health metrics"),
    ],
    "education": [
        _phase("Foundation", "Learn the core concepts",
               "Study fundamental concepts", "Take notes and summarize", "Practice exercises",
               "Watch tutorial/lecture", "Review and self-test"),
        _phase("Deep Learning", "Go beyond the basics",
               "Study advanced material", "Work on practice problems", "Create flashcards for review",
               "Apply concepts to project"),
        _phase("Application & Mastery", "Prove the skill on real work",
               "Work on capstone project", "Review all material", "Practice teaching concepts",
               "Take practice assessment"),
    ],
    "finance": [
        _phase("Assessment", "Understand your current financial situation",
               "Track all expenses for a week", "Review bank statements", "Calculate net worth",
               "Identify unnecessary subscriptions"),
        _phase("Planning", "Create a savings strategy",
               "Create monthly budget", "Set up automatic savings", "Research high-yield savings accounts",
               "Plan for upcoming expenses"),
        _phase("Execution", "Implement and monitor your plan",
               "Weekly budget review", "Find ways to reduce expenses", "Review savings progress",
               "Adjust budget as needed"),
    ],
    "personal": [
        _phase("Self-Discovery", "Understand yourself better",
               "Journaling session", "Identify values and priorities", "Set specific objectives"),
        _phase("Development", "Work on personal development",
               "Read personal development content", "Practice new habit", "Reflect on progress"),
        _phase("Integration", "Integrate changes into daily life",
               "Review and adjust goals", "Celebrate progress", "Plan next steps"),
    ],
    "fitness": [
        _phase("Getting Started", "Build a safe baseline",
               "Light cardio session", "Basic strength exercises", "Stretching routine", "Plan workout schedule"),
        _phase("Building Strength", "Increase volume steadily",
               "Cardio workout", "Strength training", "Core workout", "Recovery stretching"),
        _phase("Advanced Training", "Push intensity while staying healthy",
               "Intense cardio session", "Heavy strength training", "Flexibility work"),
    ],
    "creativity": [
        _phase("Exploration", "Explore and gather inspiration",
               "Research and gather inspiration", "Experiment with techniques", "Create rough sketches/drafts"),
        _phase("Development", "Develop your creative skills",
               "Focused creative practice", "Learn new technique", "Work on project"),
        _phase("Refinement", "Polish and share your work",
               "Refine and edit work", "Get feedback", "Prepare for sharing/exhibition"),
    ],
    "relationships": [
        _phase("Reflection", "Understand your relationship goals",
               "Reflect on relationship values", "Identify areas for improvement", "Plan quality time activities"),
        _phase("Connection", "Build deeper connections",
               "Quality time with loved one", "Practice active listening", "Express appreciation",
               "Plan meaningful activity"),
        _phase("Growth", "Strengthen and grow together",
               "Have meaningful conversation", "Try new activity together", "Reflect on relationship progress"),
    ],
    # Keyword templates: picked by goal title before falling back to the category.
    "job_search": [
        _phase("Preparation", "Get your materials ready",
               "Update resume", "Optimize LinkedIn profile", "Research target companies",
               "Identify key skills to highlight", "Prepare portfolio/work samples"),
        _phase("Active Search", "Apply and build your network",
               "Apply to job postings", "Networking outreach", "Practice interview questions",
               "Follow up on applications", "Attend networking event or webinar"),
        _phase("Interview Preparation", "Convert interviews into offers",
               "Research company culture", "Practice behavioral questions", "Prepare questions for interviewer",
               "Mock interview session", "Review and refine pitch"),
    ],
    "weight_loss": [
        _phase("Foundation & Assessment", "Establish baseline habits and assess current fitness level",
               "Take body measurements and photos", "Plan weekly meal prep", "30-minute walk or light cardio",
               "Research healthy recipes", "Set up meal tracking app"),
        _phase("Building Momentum", "Make the routine stick",
               "45-minute cardio session", "Strength training workout", "Meal prep for the week",
               "30-minute active recovery (yoga/stretching)", "Review and log weekly progress"),
        _phase("Intensification", "Raise the intensity",
               "High-intensity interval training (HIIT)", "Full body strength workout", "Active cardio session",
               "Flexibility and mobility work", "Weekly weigh-in and measurements"),
        _phase("Maintenance & Lifestyle", "Keep the results for good",
               "Workout session (your choice)", "Plan next week's activities", "Try a new healthy recipe",
               "Active outdoor activity", "Reflect on progress and set new mini-goals"),
    ],
    "reading": [
        _phase("Setup", "Choose what to read and make time for it",
               "Pick reading list", "Set daily reading slot", "Set up reading notes"),
        _phase("Reading", "Read consistently",
               "Reading session", "Summarize chapter", "Discuss or share an idea"),
        _phase("Reflection", "Turn reading into insight",
               "Review notes", "Write short review", "Choose next books"),
    ],
    "mindfulness": [
        _phase("Introduction", "Learn meditation basics",
               "5-minute guided meditation", "Deep breathing exercises", "Journaling practice",
               "Learn about mindfulness"),
        _phase("Building Practice", "Establish regular meditation habit",
               "10-minute meditation", "Mindful walking", "Gratitude journaling", "Body scan meditation"),
        _phase("Deepening Practice", "Extend and deepen your practice",
               "20-minute meditation", "Mindfulness in daily activities", "Loving-kindness meditation",
               "Weekly reflection"),
    ],
}

TITLE_KEYWORDS: list[tuple[str, str]] = [
    ("weight", "weight_loss"),
    ("lose", "weight_loss"),
    ("learn", "education"),
    ("study", "education"),
    ("course", "education"),
    ("job", "job_search"),
    ("interview", "job_search"),
    ("promotion", "career"),
    ("save", "finance"),
    ("money", "finance"),
    ("budget", "finance"),
    ("read", "reading"),
    ("book", "reading"),
    ("meditat", "mindfulness"),
    ("mindful", "mindfulness"),
    ("stress", "mindfulness"),
]


class TemplateConfigError(ValueError):
    pass


def select_template(goal: Goal, templates: dict[str, list[PhaseTemplate]] | None = None) -> list[PhaseTemplate]:
    """Pick phase templates for a goal: title keywords first, then the goal's category."""
    tpl_map = templates or DEFAULT_TEMPLATES
    title = goal.title.lower()
    for keyword, name in TITLE_KEYWORDS:
        if keyword in title and name in tpl_map:
            return tpl_map[name]
    return tpl_map.get(goal.category, DEFAULT_TEMPLATES[goal.category])


def load_template_file(path: str | Path) -> dict[str, list[PhaseTemplate]]:
    """Load phase templates from a YAML file.

    Format:
      <name>:
        - title: "Phase title"
          description: "optional"
          tasks: ["Task1", "Task2", ...]

    Returns a mapping of template name -> list of PhaseTemplate.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise TemplateConfigError("template file must be a mapping of name -> list of phases")

    out: dict[str, list[PhaseTemplate]] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise TemplateConfigError("template names must be non-empty strings")
        if not isinstance(v, list) or not v:
            raise TemplateConfigError(f"template '{k}' must be a non-empty list of phases")
        out[k.strip()] = [_phase_from_raw(k, i, item) for i, item in enumerate(v)]
    return out


def _phase_from_raw(name: str, index: int, item: Any) -> PhaseTemplate:
    where = f"template '{name}' phase {index}"
    if not isinstance(item, dict):
        raise TemplateConfigError(f"{where} must be a mapping")
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        raise TemplateConfigError(f"{where} needs a non-empty title")
    description = item.get("description", "")
    if not isinstance(description, str):
        raise TemplateConfigError(f"{where} description must be a string")
    tasks = item.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        raise TemplateConfigError(f"{where} tasks must be a non-empty list")
    titles: list[str] = []
    for t in tasks:
        if not isinstance(t, str) or not t.strip():
            raise TemplateConfigError(f"{where} tasks must be non-empty strings")
        titles.append(t.strip())
    return PhaseTemplate(title=title.strip(), description=description.strip(), tasks=tuple(titles))


def merged_templates(
    overrides: dict[str, list[PhaseTemplate]] | None = None,
) -> dict[str, list[PhaseTemplate]]:
    """Return DEFAULT_TEMPLATES merged with optional overrides.

    Overrides replace templates of the same name, and may add new ones.
    """
    merged = dict(DEFAULT_TEMPLATES)
    if overrides:
        for k, v in overrides.items():
            merged[k] = list(v)
    return merged


def load_and_merge(template_file: str | None) -> dict[str, list[PhaseTemplate]]:
    if not template_file:
        return merged_templates()
    overrides = load_template_file(template_file)
    return merged_templates(overrides)
