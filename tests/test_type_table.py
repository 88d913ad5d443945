import tempfile
import unittest
from pathlib import Path

from implgen.errors import ListingError, SourceLocation
from implgen.type_defs import NamedType, TypeKind
from implgen.type_table import TypeTable

HIERARCHY = '''
public interface p.Closeable {
  void close();
}
public interface p.Resource extends p.Closeable {
  void open();
}
public abstract class p.Base implements p.Resource {
  public abstract void open();
  protected abstract void reset();
}
public abstract class p.Leaf extends p.Base implements p.Closeable {
  public abstract void flush();
}
'''


class TestTypeTable(unittest.TestCase):
    def setUp(self):
        self.types = TypeTable()
        self.types.load_source(HIERARCHY, "hierarchy.lst")

    def test_object_is_preloaded(self):
        obj = self.types.get("java.lang.Object")
        self.assertIsNotNone(obj)
        self.assertIsNone(obj.superclass)
        names = {m.name for m in obj.methods}
        self.assertTrue({"equals", "hashCode", "toString", "clone", "finalize", "wait"} <= names)

    def test_lookup_primitive_and_array_tokens(self):
        self.assertEqual(self.types.lookup("int").kind, TypeKind.PRIMITIVE)
        array = self.types.lookup("java.lang.String[]")
        self.assertEqual(array.kind, TypeKind.ARRAY)
        self.assertEqual(array.component, NamedType("java.lang.String"))
        self.assertIsNone(self.types.lookup("p.Missing"))
        self.assertIn("p.Leaf", self.types)

    def test_class_chain(self):
        leaf = self.types.get("p.Leaf")
        self.assertEqual([d.name for d in self.types.class_chain(leaf)],
                         ["p.Leaf", "p.Base", "java.lang.Object"])

    def test_ancestors_each_once(self):
        leaf = self.types.get("p.Leaf")
        self.assertEqual([d.name for d in self.types.ancestors(leaf)],
                         ["p.Base", "java.lang.Object", "p.Resource", "p.Closeable"])

    def test_interfaces_do_not_see_object(self):
        resource = self.types.get("p.Resource")
        self.assertEqual([d.name for d in self.types.ancestors(resource)], ["p.Closeable"])
        self.assertEqual([m.name for m in self.types.public_methods(resource)], ["open", "close"])

    def test_public_methods_order(self):
        leaf = self.types.get("p.Leaf")
        names = [m.name for m in self.types.public_methods(leaf)]
        self.assertEqual(names[0], "flush")
        self.assertEqual(names[1], "open")
        self.assertNotIn("reset", names)
        self.assertLess(names.index("toString"), names.index("close"))

    def test_cyclic_hierarchy_terminates(self):
        types = TypeTable()
        types.load_source('''
        public interface p.A extends p.B { }
        public interface p.B extends p.A { }
        ''')
        self.assertEqual([d.name for d in types.ancestors(types.get("p.A"))], ["p.B"])

    def test_redefinition_replaces(self):
        with self.assertLogs("implgen.type_table", level="WARNING"):
            self.types.load_source("public interface p.Closeable { }", "again.lst")
        self.assertEqual(self.types.get("p.Closeable").methods, ())
        self.assertEqual(self.types.sources["p.Closeable"], "again.lst")

    def test_load_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "marker.lst"
            path.write_text("public interface p.Marker { }\n", encoding="utf-8")
            decls = self.types.load_file(path)
        self.assertEqual([d.name for d in decls], ["p.Marker"])
        self.assertEqual(self.types.sources["p.Marker"], str(path))

    def test_load_file_rejects_undecodable_bytes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "latin1.lst"
            path.write_bytes(b"public interface p.Gr\xfc\xdfe { }\n")
            with self.assertRaises(ListingError) as ctx:
                self.types.load_file(path)
        self.assertEqual(ctx.exception.location, SourceLocation(str(path), 1, 22))
        self.assertIsNone(self.types.get("p.Grüße"))


if __name__ == '__main__':
    unittest.main()
