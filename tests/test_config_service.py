import pytest

from core.errors import NotFoundError
from core.services.config_service import ConfigService


@pytest.fixture
def config(session):
    return ConfigService(session)


def test_seeded_configuration_is_listed(config):
    assert [r.name for r in config.list_ai_roles()] == ["Running coach"]
    assert [f.name for f in config.list_return_formats()] == ["Plan with week 1", "Single week"]
    assert [(p.kind, p.is_default) for p in config.list_prompts()] == [("plan", True), ("week", True)]
    assert [p.name for p in config.list_prompts("week")] == ["Default week"]


def test_create_building_blocks(config):
    role = config.create_ai_role("Marathon coach", "You coach marathoners.")
    must = config.create_must_haves("Minimal", {"days": "dayNumber and laps"})
    fmt = config.create_return_format("Week only", {"week": {"days": []}})

    assert role.id and must.id and fmt.id
    assert fmt.example_json is None
    assert len(config.list_ai_roles()) == 2
    assert config.list_must_haves()[-1].fields == {"days": "dayNumber and laps"}


def test_rule_set_keeps_topic_and_rule_order(config):
    rule_set = config.create_rule_set(
        "Cautious",
        [("Volume", ["Cap long runs at 30%.", "Add one mile a week."]), ("Rest", ["One rest day."])],
    )
    stored = [r for r in config.list_rule_sets() if r.id == rule_set.id][0]

    assert [t.name for t in stored.topics] == ["Volume", "Rest"]
    assert [r.text for r in stored.topics[0].rules] == ["Cap long runs at 30%.", "Add one mile a week."]
    assert [r.position for r in stored.topics[0].rules] == [0, 1]


def test_create_prompt_with_instructions(config):
    role = config.create_ai_role("Terse coach", "Be brief.")
    prompt = config.create_prompt(
        name="Short week",
        kind="week",
        ai_role_id=role.id,
        instructions=[("Week", "Write week {weekNumber}."), ("", "Keep notes short.")],
    )

    assert not prompt.is_default
    assert [i.position for i in prompt.instructions] == [0, 1]
    template = config.render_template(prompt.id)
    assert template.startswith("Be brief.")
    assert "### Week" in template
    assert "Write week {weekNumber}." in template


def test_default_prompt_replaces_previous_default(config, plan_service):
    prompt = config.create_prompt(name="New plan", kind="plan", is_default=True, instructions=[("Plan", "Go.")])

    defaults = {(p.kind, p.name) for p in config.list_prompts() if p.is_default}
    assert defaults == {("plan", "New plan"), ("week", "Default week")}
    assert plan_service.repo.default_prompt("plan").id == prompt.id


def test_set_default_prompt(config, plan_service):
    seeded = config.list_prompts("plan")[0]
    other = config.create_prompt(name="Alt plan", kind="plan", is_default=True)
    assert plan_service.repo.default_prompt("plan").id == other.id

    config.set_default_prompt(seeded.id)
    assert plan_service.repo.default_prompt("plan").id == seeded.id
    assert [p.is_default for p in config.list_prompts("plan")] == [True, False]


def test_prompt_with_unknown_reference(config):
    with pytest.raises(NotFoundError) as exc:
        config.create_prompt(name="Broken", kind="plan", rule_set_id=999)
    assert exc.value.field == "rule_set_id"


def test_unknown_prompt(config):
    with pytest.raises(NotFoundError):
        config.get_prompt(404)
    with pytest.raises(NotFoundError):
        config.set_default_prompt(404)
