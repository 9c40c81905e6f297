"""Protocol backends the bridge can drive."""
