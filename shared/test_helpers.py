"""
Test helper functions and factory methods for the form logic engine.
"""

import json
from typing import Dict, Any, List


class TestDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_order_form_fields() -> List[Dict[str, Any]]:
        """Create the fields of a small order form."""
        return [
            {"id": "customer_type", "type": "radio", "label": "Customer type", "required": True},
            {"id": "company", "type": "text", "label": "Company name"},
            {"id": "vat_number", "type": "text", "label": "VAT number"},
            {"id": "country", "type": "select", "label": "Country", "required": True},
            {"id": "price", "type": "number", "label": "Unit price"},
            {"id": "quantity", "type": "number", "label": "Quantity"},
            {"id": "discount", "type": "number", "label": "Discount"},
            {"id": "total", "type": "number", "label": "Total"},
            {"id": "gift_wrap", "type": "checkbox", "label": "Gift wrap"},
            {"id": "gift_message", "type": "textarea", "label": "Gift message"},
            {"id": "extras", "type": "checkbox", "label": "Extras"},
        ]

    @staticmethod
    def create_order_form_rules() -> List[Dict[str, Any]]:
        """Create order form rules in the rule-set JSON format."""
        return [
            {
                "id": "rule_business",
                "name": "Business customers",
                "description": "Business customers give a company and VAT number",
                "conditions": [
                    {"fieldId": "customer_type", "operator": "equals", "value": "business"}
                ],
                "actions": [
                    {"type": "show_field", "targetFieldId": "company"},
                    {"type": "require_field", "targetFieldId": "company"},
                    {"type": "show_field", "targetFieldId": "vat_number"}
                ],
                "active": True,
                "priority": 100
            },
            {
                "id": "rule_private",
                "name": "Private customers",
                "description": "Company fields are hidden for private customers",
                "conditions": [
                    {"fieldId": "customer_type", "operator": "not_equals", "value": "business"}
                ],
                "actions": [
                    {"type": "hide_field", "targetFieldId": "company"},
                    {"type": "hide_field", "targetFieldId": "vat_number"}
                ],
                "active": True,
                "priority": 100
            },
            {
                "id": "rule_vat_outside_eu",
                "name": "No VAT outside the EU",
                "description": "",
                "conditions": [
                    {"fieldId": "country", "operator": "is_not_one_of", "value": ["de", "fr", "nl"]}
                ],
                "actions": [
                    {"type": "disable_field", "targetFieldId": "vat_number"}
                ],
                "active": True,
                "priority": 50
            },
            {
                "id": "rule_total",
                "name": "Order total",
                "description": "Total is price times quantity minus discount",
                "conditions": [
                    {"fieldId": "price", "operator": "is_not_empty"}
                ],
                "actions": [
                    {
                        "type": "calculate_value",
                        "targetFieldId": "total",
                        "formula": "({price} * {quantity}) - {discount}"
                    },
                    {"type": "disable_field", "targetFieldId": "total"}
                ],
                "active": True,
                "priority": 20
            },
            {
                "id": "rule_gift",
                "name": "Gift message",
                "description": "",
                "conditions": [
                    {"fieldId": "gift_wrap", "operator": "is_not_checked"}
                ],
                "actions": [
                    {"type": "hide_field", "targetFieldId": "gift_message"}
                ],
                "active": True,
                "priority": 10
            },
            {
                "id": "rule_express",
                "name": "Express checkout",
                "description": "Large or express orders skip to review",
                "conditions": [
                    {"fieldId": "total", "operator": "greater_than", "value": 1000},
                    {"fieldId": "extras", "operator": "contains", "value": "express", "logic": "or"}
                ],
                "actions": [
                    {"type": "jump_to_page", "value": "review"}
                ],
                "active": True,
                "priority": 5
            },
            {
                "id": "rule_archived",
                "name": "Archived promotion",
                "description": "",
                "conditions": [
                    {"fieldId": "quantity", "operator": "greater_than", "value": 0}
                ],
                "actions": [
                    {"type": "set_value", "targetFieldId": "discount", "value": 5}
                ],
                "active": False,
                "priority": 1
            }
        ]

    @staticmethod
    def create_order_form_rules_json() -> str:
        """Create the order form rules as an import payload."""
        return json.dumps(TestDataFactory.create_order_form_rules())


class TestEnvironment:
    """Test environment configuration."""

    @staticmethod
    def get_mock_config() -> Dict[str, Any]:
        """Get mock environment configuration."""
        return {
            "FORM_LOGIC_ENV": "test",
            "FORM_LOGIC_LOG_LEVEL": "debug",
            "FORM_LOGIC_MAX_FORMULA_LENGTH": "200",
            "FORM_LOGIC_MAX_FORMULA_DEPTH": "8",
            "FORM_LOGIC_RULE_ID_PREFIX": "test",
            "FORM_LOGIC_ENABLE_METRICS": "false"
        }


# Global instances for easy access
test_data_factory = TestDataFactory()
test_environment = TestEnvironment()
