"""End-to-end tests for the folding pipeline: scan, merge, suppress, propagate."""

import pytest

from codefold.config import FoldConfig
from codefold.core.folding import (
    ContractOutcome,
    FoldPipeline,
    LinkageTable,
    MergePreconditionError,
    PipelineState,
    SiteKind,
    StructuralMerger,
    UnitRole,
    run,
    scan,
    transform,
)
from codefold.core.java_tree import attribute_types, parse_source, print_unit


# =========================================================================
# Sample Java source fixtures
# =========================================================================

USER_MAPPER = '''package com.example.mapper;

import com.example.model.User;
import org.mapstruct.Mapper;

@Mapper
public interface UserMapper {

    String PREFIX = "user-";

    String toKey(User user);

    default String first(User user) {
        return second(user);
    }

    default String second(User user) {
        return PREFIX + toKey(user);
    }
}
'''

USER_MAPPER_IMPL = '''package com.example.mapper;

import com.example.model.User;
import javax.annotation.processing.Generated;

@Generated(value = "org.mapstruct.ap.MappingProcessor")
public class UserMapperImpl implements UserMapper {

    @Override
    public String toKey(User user) {
        if ( user == null ) {
            return null;
        }
        return user.getId();
    }
}
'''

USER_SERVICE = '''package com.example.service;

import com.example.mapper.UserMapperImpl;
import com.example.model.User;

public class UserService {

    private final UserMapperImpl mapper = new UserMapperImpl();

    public String key(User user) {
        return mapper.first(user);
    }
}
'''

USER = '''package com.example.model;

public class User {
    public String getId() {
        return "1";
    }
}
'''

ORDER_MAPPER = '''package com.example.mapper;

import org.mapstruct.Mapper;

@Mapper
public interface OrderMapper {
    String toKey(Object order);
}
'''

ORDER_MAPPER_IMPL = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class OrderMapperImpl implements OrderMapper {
    @Override
    public String toKey(Object order) {
        return "order";
    }
}
'''

LEGACY_ORDER_MAPPER_IMPL = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class LegacyOrderMapperImpl implements OrderMapper {
    @Override
    public String toKey(Object order) {
        return "legacy";
    }
}
'''

SHARED_IMPL = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class SharedMapperImpl implements UserMapper, OrderMapper {
    public String toKey(com.example.model.User user) {
        return "u";
    }

    public String toKey(Object order) {
        return "o";
    }
}
'''

ORDER_CLIENT = '''package com.example.service;

import com.example.mapper.OrderMapperImpl;

class OrderClient {
    OrderMapperImpl mapper;
}
'''

NESTED_ORDER_MAPPER_IMPL = '''package com.example.mapper;

import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class OrderMapperImpl implements OrderMapper {

    public static class Helper {
    }

    @Override
    public String toKey(Object order) {
        return "order";
    }
}
'''

HELPER_CLIENT = '''package com.example.service;

import com.example.mapper.OrderMapperImpl;

class HelperClient {
    OrderMapperImpl.Helper helper = new OrderMapperImpl.Helper();
}
'''


def _make_units(*named_sources):
    """Parse ``(path, source)`` pairs; paths under ``gen/`` are generated."""
    return attribute_types([
        parse_source(src, path, generated=path.startswith("gen/"))
        for path, src in named_sources
    ])


def _user_project():
    return _make_units(
        ("src/com/example/mapper/UserMapper.java", USER_MAPPER),
        ("gen/com/example/mapper/UserMapperImpl.java", USER_MAPPER_IMPL),
        ("src/com/example/service/UserService.java", USER_SERVICE),
        ("src/com/example/model/User.java", USER),
    )


class _RefusingMerger(StructuralMerger):
    """Fails every merge."""

    def merge(self, contract, realization):
        raise MergePreconditionError(contract.identity, "refused for test")


# =========================================================================
# Scanning
# =========================================================================

class TestScan:

    def test_returns_frozen_table(self):
        table = scan(_user_project())
        assert table.frozen
        assert [u.identity for u in table.realizations_for("com.example.mapper.UserMapper")] == [
            "com.example.mapper.UserMapperImpl"
        ]

    def test_state_transitions(self):
        pipeline = FoldPipeline(FoldConfig(workers=2))
        assert pipeline.state == PipelineState.IDLE
        units = _user_project()
        table = pipeline.scan(units)
        assert pipeline.state == PipelineState.SCANNING
        pipeline.transform(units, table)
        assert pipeline.state == PipelineState.DONE

    def test_transform_rejects_open_table(self):
        with pytest.raises(ValueError):
            transform(_user_project(), LinkageTable())


# =========================================================================
# Merge, suppress, propagate
# =========================================================================

class TestFold:

    def test_realization_consumed(self):
        result = run(_user_project())

        assert len(result.units) == 3
        assert result.unit_named("com.example.mapper.UserMapperImpl") is None
        assert result.report.suppressed == ["com.example.mapper.UserMapperImpl"]

    def test_merged_unit_replaces_contract_in_place(self):
        result = run(_user_project())

        assert [u.path for u in result.units] == [
            "src/com/example/mapper/UserMapper.java",
            "src/com/example/service/UserService.java",
            "src/com/example/model/User.java",
        ]
        merged = result.unit_at("src/com/example/mapper/UserMapper.java")
        assert merged.role == UnitRole.PLAIN
        text = print_unit(merged)
        assert "public class UserMapper {" in text
        assert "return user.getId();" in text

    def test_promoted_default_methods_call_each_other(self):
        text = print_unit(run(_user_project()).unit_at("src/com/example/mapper/UserMapper.java"))

        assert "public String first(User user) {\n        return second(user);" in text
        assert "public String second(User user) {\n        return PREFIX + toKey(user);" in text
        assert 'public static final String PREFIX = "user-";' in text

    def test_references_point_at_contract(self):
        result = run(_user_project())
        text = print_unit(result.unit_at("src/com/example/service/UserService.java"))

        assert "import com.example.mapper.UserMapper;" in text
        assert "private final UserMapper mapper = new UserMapper();" in text
        assert result.report.rewritten_sites[SiteKind.IMPORT] == 1
        assert result.report.rewritten_sites[SiteKind.INSTANTIATION] == 1

    def test_nested_type_of_realization_followed_into_contract(self):
        result = run(_make_units(
            ("src/com/example/mapper/OrderMapper.java", ORDER_MAPPER),
            ("gen/com/example/mapper/OrderMapperImpl.java", NESTED_ORDER_MAPPER_IMPL),
            ("src/com/example/service/HelperClient.java", HELPER_CLIENT),
        ))

        merged = print_unit(result.unit_at("src/com/example/mapper/OrderMapper.java"))
        assert "public static class Helper {" in merged

        client = print_unit(result.unit_at("src/com/example/service/HelperClient.java"))
        assert "OrderMapperImpl" not in client
        assert "import com.example.mapper.OrderMapper;" in client
        assert "OrderMapper.Helper helper = new OrderMapper.Helper();" in client

    def test_untouched_units_are_identical(self):
        units = _user_project()
        result = run(units)
        assert result.unit_at("src/com/example/model/User.java").tree is units[3].tree

    def test_report(self):
        report = run(_user_project()).report

        assert report.outcome_of("com.example.mapper.UserMapper") == ContractOutcome.MERGED
        assert report.contracts[0].realization == "com.example.mapper.UserMapperImpl"
        assert report.summary() == {"merged": 1, "skipped-ambiguous": 0, "skipped-malformed": 0}
        assert not report.has_skips
        assert report.diagnostics == []

    def test_no_contracts_is_a_no_op(self):
        units = _make_units(("src/User.java", USER))
        result = run(units)
        assert [u.tree for u in result.units] == [u.tree for u in units]
        assert result.report.contracts == []


# =========================================================================
# Skips
# =========================================================================

class TestAmbiguity:

    def test_contract_without_realization(self):
        units = _make_units(("src/OrderMapper.java", ORDER_MAPPER))
        result = run(units)

        assert print_unit(result.units[0]) == ORDER_MAPPER
        report = result.report.contracts[0]
        assert report.outcome == ContractOutcome.SKIPPED_AMBIGUOUS
        assert report.candidates == 0
        assert len(result.report.diagnostics) == 1
        assert result.report.diagnostics[0].severity == "warning"

    def test_two_realizations(self):
        units = _make_units(
            ("src/OrderMapper.java", ORDER_MAPPER),
            ("gen/OrderMapperImpl.java", ORDER_MAPPER_IMPL),
            ("gen/LegacyOrderMapperImpl.java", LEGACY_ORDER_MAPPER_IMPL),
            ("src/OrderClient.java", ORDER_CLIENT),
        )
        result = run(units)

        assert len(result.units) == 4
        assert result.report.outcome_of("com.example.mapper.OrderMapper") == ContractOutcome.SKIPPED_AMBIGUOUS
        assert result.report.contracts[0].candidates == 2
        assert result.report.suppressed == []
        # No redirection happens for an unmerged contract
        assert print_unit(result.unit_at("src/OrderClient.java")) == ORDER_CLIENT
        assert print_unit(result.unit_at("src/OrderMapper.java")) == ORDER_MAPPER

    def test_shared_realization_skips_all_claimants(self):
        units = _make_units(
            ("src/UserMapper.java", USER_MAPPER),
            ("src/OrderMapper.java", ORDER_MAPPER),
            ("gen/SharedMapperImpl.java", SHARED_IMPL),
        )
        report = run(units).report

        assert report.outcome_of("com.example.mapper.UserMapper") == ContractOutcome.SKIPPED_AMBIGUOUS
        assert report.outcome_of("com.example.mapper.OrderMapper") == ContractOutcome.SKIPPED_AMBIGUOUS
        assert report.suppressed == []
        assert report.has_skips

    def test_other_contracts_still_merge(self):
        units = _make_units(
            ("src/OrderMapper.java", ORDER_MAPPER),
            ("gen/OrderMapperImpl.java", ORDER_MAPPER_IMPL),
            ("gen/LegacyOrderMapperImpl.java", LEGACY_ORDER_MAPPER_IMPL),
            ("src/UserMapper.java", USER_MAPPER),
            ("gen/UserMapperImpl.java", USER_MAPPER_IMPL),
        )
        report = run(units).report

        assert report.summary() == {"merged": 1, "skipped-ambiguous": 1, "skipped-malformed": 0}
        assert [c.contract for c in report.contracts] == [
            "com.example.mapper.OrderMapper",
            "com.example.mapper.UserMapper",
        ]


class TestMergeFailure:

    def test_precondition_error_isolated_to_contract(self):
        units = _user_project()
        pipeline = FoldPipeline()
        pipeline.merger = _RefusingMerger()
        result = pipeline.run(units)

        report = result.report
        assert report.outcome_of("com.example.mapper.UserMapper") == ContractOutcome.SKIPPED_MALFORMED
        assert report.contracts[0].error == "refused for test"
        assert len(report.failures) == 1
        assert report.failures[0].contract_identity == "com.example.mapper.UserMapper"

        errors = [d for d in report.diagnostics if d.severity == "error"]
        assert len(errors) == 1
        assert not errors[0].recoverable

        # Contract and realization both kept, references untouched
        assert len(result.units) == 4
        assert report.suppressed == []
        assert print_unit(result.unit_at("src/com/example/service/UserService.java")) == USER_SERVICE


# =========================================================================
# Idempotence
# =========================================================================

class TestIdempotence:

    def test_transform_twice_with_same_table(self):
        units = _user_project()
        pipeline = FoldPipeline()
        table = pipeline.scan(units)
        first = pipeline.transform(units, table)
        second = pipeline.transform(first.units, table)

        assert [print_unit(u) for u in second.units] == [print_unit(u) for u in first.units]
        assert sum(second.report.rewritten_sites.values()) == 0

    def test_rerun_on_reparsed_output(self):
        first = run(_user_project())
        reparsed = _make_units(*[(u.path, print_unit(u)) for u in first.units])
        second = run(reparsed)

        assert [print_unit(u) for u in second.units] == [print_unit(u) for u in first.units]
        assert second.report.contracts == []


# =========================================================================
# Linkage precedence
# =========================================================================

SPLIT_CONTRACT = '''package com.example.api;

import org.mapstruct.Mapper;

@Mapper
public interface PriceMapper {
    String format(Object price);
}
'''

SPLIT_REALIZATION = '''package com.example.gen;

import com.example.api.PriceMapper;
import javax.annotation.processing.Generated;

@Generated("org.mapstruct.ap.MappingProcessor")
public class PriceMapperImpl implements PriceMapper {
    public String format(Object price) {
        return String.valueOf(price);
    }
}
'''


class TestPrecedence:

    def _units(self):
        return _make_units(
            ("src/api/PriceMapper.java", SPLIT_CONTRACT),
            ("gen/PriceMapperImpl.java", SPLIT_REALIZATION),
        )

    def test_resolved_links_across_packages(self):
        report = run(self._units(), config=FoldConfig(linkage_precedence="resolved")).report
        assert report.outcome_of("com.example.api.PriceMapper") == ContractOutcome.MERGED

    def test_suffix_only_looks_in_own_package(self):
        report = run(self._units(), config=FoldConfig(linkage_precedence="suffix")).report
        assert report.outcome_of("com.example.api.PriceMapper") == ContractOutcome.SKIPPED_AMBIGUOUS
        assert report.contracts[0].candidates == 0
