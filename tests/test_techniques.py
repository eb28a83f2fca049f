"""
Tests for special technique templates.

Covers:
- Default parameters per technique type
- Saving, listing and fetching templates per owner
- Resolving template references from the builder
"""

import pytest

from periodization.builder import ProgramBuilder
from periodization.errors import NotFoundError, PermissionDeniedError, ValidationError
from periodization.schemas import SpecialTechnique, TechniqueType
from periodization.techniques import DEFAULT_PARAMETERS, TechniqueLibrary, default_parameters

OWNER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def library(db):
    return TechniqueLibrary(db)


def test_every_type_has_default_parameters():
    assert set(DEFAULT_PARAMETERS) == set(TechniqueType)


def test_default_parameters_are_copies():
    params = default_parameters("drop_set")
    params["drops"] = 10

    assert default_parameters(TechniqueType.DROP_SET)["drops"] == 3

    with pytest.raises(ValidationError, match="Unknown technique type"):
        default_parameters("forced_reps")


def test_save_template_fills_defaults(library):
    technique = SpecialTechnique(
        name="Short rest-pause", type=TechniqueType.REST_PAUSE, parameters={"rest_seconds": 10}
    )

    saved = library.save_template(OWNER, technique)

    assert saved.is_template
    assert saved.user_id == OWNER
    assert saved.parameters["rest_seconds"] == 10
    assert saved.parameters["mini_sets"] == 3
    assert library.get(saved.id, OWNER) == saved


def test_templates_are_listed_per_owner(library):
    library.save_template(OWNER, SpecialTechnique(name="Myo-reps", type="myo_reps"))
    library.save_template(OWNER, SpecialTechnique(name="Clusters", type="cluster_set"))
    library.save_template(OTHER_USER, SpecialTechnique(name="Drop set", type="drop_set"))

    assert [t.name for t in library.list_templates(OWNER)] == ["Clusters", "Myo-reps"]
    assert [t.name for t in library.list_templates(OTHER_USER)] == ["Drop set"]


def test_template_ownership(library):
    saved = library.save_template(OWNER, SpecialTechnique(name="Giant set", type="giant_set"))

    with pytest.raises(PermissionDeniedError):
        library.get(saved.id, OTHER_USER)
    with pytest.raises(PermissionDeniedError):
        library.save_template(OTHER_USER, saved.model_copy(update={"name": "Mine now"}))
    with pytest.raises(NotFoundError):
        library.get("missing", OWNER)

    assert library.get(saved.id, OWNER).name == "Giant set"


def test_saving_again_overwrites_template(library):
    saved = library.save_template(OWNER, SpecialTechnique(name="Drop set", type="drop_set"))

    library.save_template(OWNER, saved.model_copy(update={"parameters": {"drops": 2}}))

    assert library.get(saved.id, OWNER).parameters["drops"] == 2
    assert len(library.list_templates(OWNER)) == 1


def test_builder_resolves_templates_through_library(catalog, library, sample_program):
    template = library.save_template(OWNER, SpecialTechnique(name="Myo-reps", type="myo_reps"))
    builder = ProgramBuilder(catalog, library.lookup_for(OWNER))
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]

    exercise = builder.add_exercise(
        session, "lateral-raise", {"sets": 1, "reps": "15", "special_technique_id": template.id}
    )
    assert exercise.special_technique_id == template.id

    other_builder = ProgramBuilder(catalog, library.lookup_for(OTHER_USER))
    with pytest.raises(PermissionDeniedError):
        other_builder.validate(sample_program)
