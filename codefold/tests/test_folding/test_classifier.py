"""Tests for unit classification (contract / realization / plain)."""

import pytest

from codefold.config import FoldConfig
from codefold.core.folding import AnnotationClassifier, UnitClassifier, UnitRole
from codefold.core.java_tree import attribute_types, parse_source


# =========================================================================
# Sample Java source fixtures
# =========================================================================

CONTRACT = '''package com.example.mapper;

import org.mapstruct.Mapper;

@Mapper(componentModel = "spring")
public interface UserMapper {
    UserDto toDto(User user);
}
'''

QUALIFIED_CONTRACT = '''package com.example.mapper;

@org.mapstruct.Mapper
public abstract class OrderMapper {
}
'''

REALIZATION = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated(
    value = "org.mapstruct.ap.MappingProcessor",
    date = "2024-01-01T10:00:00+0000"
)
public class UserMapperImpl implements UserMapper {
}
'''

JAKARTA_REALIZATION = '''package com.example.mapper;

@jakarta.annotation.Generated("org.mapstruct.ap.MappingProcessor")
public class OrderMapperImpl extends OrderMapper {
}
'''

OTHER_GENERATOR = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("com.acme.Codegen")
public class UserMapperImpl implements UserMapper {
}
'''

NO_SUPERTYPE = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class UserMapperImpl {
}
'''

BARE_SUFFIX = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class Impl implements UserMapper {
}
'''

HAND_WRITTEN = '''package com.example.mapper;

public class UserMapperImpl implements UserMapper {
}
'''

BOTH = '''package com.example.mapper;

import javax.annotation.processing.Generated;
import org.mapstruct.Mapper;

@Mapper
@Generated("org.mapstruct.ap.MappingProcessor")
public abstract class DualMapperImpl extends Base {
}
'''


def _make_unit(source: str, path: str = "Unit.java"):
    (unit,) = attribute_types([parse_source(source, path)])
    return unit


# =========================================================================
# Tests
# =========================================================================

class TestAnnotationClassifier:

    def setup_method(self):
        self.classifier = AnnotationClassifier(FoldConfig())

    def test_contract_by_imported_marker(self):
        assert self.classifier.classify(_make_unit(CONTRACT)) == UnitRole.CONTRACT

    def test_contract_by_qualified_marker(self):
        assert self.classifier.classify(_make_unit(QUALIFIED_CONTRACT)) == UnitRole.CONTRACT

    def test_generated_realization(self):
        assert self.classifier.classify(_make_unit(REALIZATION)) == UnitRole.REALIZATION

    def test_jakarta_generated_realization(self):
        assert self.classifier.classify(_make_unit(JAKARTA_REALIZATION)) == UnitRole.REALIZATION

    @pytest.mark.parametrize("source", [
        OTHER_GENERATOR,
        NO_SUPERTYPE,
        BARE_SUFFIX,
        HAND_WRITTEN,
    ], ids=["other-generator", "no-supertype", "bare-suffix", "hand-written"])
    def test_not_a_realization(self, source):
        assert self.classifier.classify(_make_unit(source)) == UnitRole.PLAIN

    def test_contract_wins_over_realization(self):
        unit = _make_unit(BOTH)
        assert self.classifier.is_realization(unit)
        assert self.classifier.classify(unit) == UnitRole.CONTRACT

    def test_unit_without_type_is_plain(self):
        unit = _make_unit("package com.example;\n")
        assert self.classifier.classify(unit) == UnitRole.PLAIN

    def test_simple_marker_name_without_import(self):
        # Unresolvable simple names are compared by simple name
        unit = _make_unit("@Mapper\ninterface Loose {}\n")
        assert self.classifier.classify(unit) == UnitRole.CONTRACT

    def test_custom_suffix(self):
        classifier = AnnotationClassifier(FoldConfig(realization_suffix="Generated_"))
        source = REALIZATION.replace("UserMapperImpl", "UserMapperGenerated_")
        assert classifier.classify(_make_unit(source)) == UnitRole.REALIZATION
        assert classifier.classify(_make_unit(REALIZATION)) == UnitRole.PLAIN


class TestClassifyUnits:

    def test_stamps_roles_in_order(self):
        units = [_make_unit(CONTRACT, "a.java"), _make_unit(REALIZATION, "b.java"),
                 _make_unit(HAND_WRITTEN, "c.java")]
        classified = AnnotationClassifier().classify_units(units)

        assert [u.role for u in classified] == [UnitRole.CONTRACT, UnitRole.REALIZATION, UnitRole.PLAIN]
        assert [u.path for u in classified] == ["a.java", "b.java", "c.java"]

    def test_existing_role_kept(self):
        unit = _make_unit(CONTRACT).with_role(UnitRole.PLAIN)
        (classified,) = AnnotationClassifier().classify_units([unit])
        assert classified.role == UnitRole.PLAIN


class _PathClassifier(UnitClassifier):
    """Classifies by file name only."""

    def is_contract(self, unit):
        return unit.path.startswith("api/")

    def is_realization(self, unit):
        return unit.path.startswith("gen/")


class TestInjectedClassifier:

    def test_custom_predicates(self):
        classifier = _PathClassifier()
        assert classifier.classify(_make_unit(HAND_WRITTEN, "api/X.java")) == UnitRole.CONTRACT
        assert classifier.classify(_make_unit(HAND_WRITTEN, "gen/X.java")) == UnitRole.REALIZATION
        assert classifier.classify(_make_unit(HAND_WRITTEN, "src/X.java")) == UnitRole.PLAIN

    def test_abstract_methods_required(self):
        with pytest.raises(TypeError):
            UnitClassifier()
