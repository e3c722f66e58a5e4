"""Tests for the category CLI commands."""

from ledgerkit.cli.main import cli


def _invoke(cli_runner, temp_db, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "category", *args])


def test_add_rule(cli_runner, temp_db):
    """Test adding a categorization rule."""
    result = _invoke(
        cli_runner, temp_db, "rule-add", "Fuel", "--pattern", "shell|esso", "--category", "Vehicle", "--subcategory", "Fuel"
    )

    assert result.exit_code == 0
    assert "Created categorization rule 'Fuel' (ID:" in result.output

    listed = _invoke(cli_runner, temp_db, "rules")
    assert "/shell|esso/ -> Vehicle > Fuel" in listed.output
    assert "manual" in listed.output


def test_add_rule_invalid(cli_runner, temp_db):
    """Test invalid rules are rejected."""
    result = _invoke(cli_runner, temp_db, "rule-add", "Broken", "--pattern", "(shell", "--category", "Vehicle")

    assert result.exit_code == 1
    assert "Rule failed validation" in result.output


def test_list_rules_empty(cli_runner, temp_db):
    """Test listing with no rules."""
    result = _invoke(cli_runner, temp_db, "rules")

    assert result.exit_code == 0
    assert "No categorization rules found." in result.output


def test_suggest(cli_runner, temp_db, categorization):
    """Test suggesting a category for a description."""
    rule = categorization.create_rule("Fuel", "shell", "Vehicle", confidence=0.9).rule

    result = _invoke(cli_runner, temp_db, "suggest", "SHELL 1234")

    assert result.exit_code == 0
    assert f"Vehicle (confidence 0.90, rule {rule.id})" in result.output


def test_suggest_no_match(cli_runner, temp_db):
    """Test an unknown description."""
    result = _invoke(cli_runner, temp_db, "suggest", "Something new")

    assert result.exit_code == 0
    assert "No matching category." in result.output


def test_learn(cli_runner, temp_db):
    """Test learning creates rules, then boosts them."""
    first = _invoke(cli_runner, temp_db, "learn", "Monthly rent payment", "--category", "Occupancy")

    assert first.exit_code == 0
    assert "Keywords: monthly, rent" in first.output
    assert "Created: 2 rules" in first.output

    second = _invoke(cli_runner, temp_db, "learn", "Rent for April", "--category", "Occupancy")
    assert "Created: 1 rules" in second.output
    assert "Boosted: 1 rules" in second.output

    learned = _invoke(cli_runner, temp_db, "rules", "--origin", "learned")
    assert "Auto-learned: rent" in learned.output
    assert "0.70" in learned.output


def test_learn_without_keywords(cli_runner, temp_db):
    """Test a description of short words teaches nothing."""
    result = _invoke(cli_runner, temp_db, "learn", "a b c", "--category", "Other")

    assert result.exit_code == 0
    assert "nothing learned" in result.output


def test_learn_blank_category(cli_runner, temp_db):
    """Test a blank category is rejected."""
    result = _invoke(cli_runner, temp_db, "learn", "Monthly rent", "--category", " ")

    assert result.exit_code == 1
    assert "Category is required" in result.output


def test_prune(cli_runner, temp_db, categorization):
    """Test pruning weak learned rules."""
    categorization.learn_from_correction("Parking garage", "Vehicle")

    result = _invoke(cli_runner, temp_db, "prune", "--below", "0.65")

    assert result.exit_code == 0
    assert "Pruned 2 learned rules" in result.output


def test_delete_rule(cli_runner, temp_db, categorization):
    """Test deleting a rule, then deleting it again."""
    rule = categorization.create_rule("Fuel", "shell", "Vehicle").rule

    result = _invoke(cli_runner, temp_db, "rule-delete", str(rule.id))
    assert result.exit_code == 0
    assert f"Deleted categorization rule {rule.id}" in result.output

    again = _invoke(cli_runner, temp_db, "rule-delete", str(rule.id))
    assert again.exit_code == 1
    assert f"Rule {rule.id} not found" in again.output
