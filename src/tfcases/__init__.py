"""Terraform test suite generation from module interfaces.

The `tfcases` package reads the declared interface of a Terraform
module and derives a native test suite from it.

Key features:
- extraction of inputs, outputs, locals and input-driven branches;
- enumeration of scenarios covering every branch outcome and edge value;
- synthesis of plan-time assertions with explanatory failure messages;
- coverage gaps for behavior plan-only tests can not observe;
- evaluation through `terraform test`, never leaving plan mode;
- a pytest plugin collecting `tfcases.yaml` suite configurations.
"""
