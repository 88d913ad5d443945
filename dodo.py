"""
doit tasks for testing implgen and generating the sample implementations.
Run with: doit
"""

import os

# Directories
OUTPUT_DIR = 'outputs'
SAMPLE_SOURCES = os.path.join(OUTPUT_DIR, 'src')

# Sample listing and the types generated from it
SAMPLE_LISTING = 'tests/listings/shapes.lst'
SAMPLE_TYPES = ['shapes.Shape', 'shapes.Polygon', 'shapes.Triangle']

# Python test files
PYTHON_TESTS = [
    'tests/test_listing_parsing.py',
    'tests/test_type_table.py',
    'tests/test_closure.py',
    'tests/test_members.py',
    'tests/test_render.py',
    'tests/test_codegen.py',
    'tests/test_implementor.py',
    'tests/test_jar_linker.py',
]


def ensure_output_dir():
    """Create output directory if it doesn't exist"""
    os.makedirs(OUTPUT_DIR, exist_ok=True)


def sample_path(type_name):
    package, _, simple = type_name.rpartition('.')
    return os.path.join(SAMPLE_SOURCES, *package.split('.'), f'{simple}Impl.java')


def run_implgen(*args):
    from implgen.implementor import main
    return main([SAMPLE_LISTING, *args]) == 0


def task_test_python():
    """Run Python tests"""
    def run_python_tests():
        import pytest
        return pytest.main(['-v'] + PYTHON_TESTS) == 0

    return {
        'actions': [run_python_tests],
        'file_dep': PYTHON_TESTS + [SAMPLE_LISTING],
        'verbosity': 2,
    }


def task_generate_samples():
    """Generate Impl sources for the sample listing"""
    ensure_output_dir()
    for type_name in SAMPLE_TYPES:
        yield {
            'name': type_name,
            'actions': [(run_implgen, ['--type', type_name, '-o', SAMPLE_SOURCES])],
            'file_dep': [SAMPLE_LISTING],
            'targets': [sample_path(type_name)],
            'clean': True,
        }


def task_test():
    """Run all tests"""
    return {
        'actions': None,
        'task_dep': ['test_python', 'generate_samples'],
    }
