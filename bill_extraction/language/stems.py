"""
Hungarian Stem Data.

Default stem -> inflected variants table used to build a StemDictionary.
Keys are accent-free lowercase stems; variants are written as they appear
in bills and are normalized when the dictionary is built.
"""

from types import MappingProxyType

HUNGARIAN_STEMS = MappingProxyType({
    "szamla": ("számla", "számlát", "számlán", "számlák", "számlákból", "számlázás", "számlázási"),
    "fizet": ("fizetés", "fizetési", "fizetve", "fizetendő", "fizetnivaló", "fizetésre", "fizetését", "fizetést"),
    "dij": ("díj", "díjak", "díjszabás", "díjbekérő", "díjat", "díjról", "díjhoz", "díjakról"),
    "hatarido": ("határidő", "határideje", "határidővel", "határidőre", "határidőt", "határidőig"),
    "esedek": ("esedékesség", "esedékes", "esedékességi"),
    "lejarat": ("lejárat", "lejárati", "lejáratkor"),
    "ertesit": ("értesítő", "értesítés", "értesítjük", "értesítve"),
    "tajekoztat": ("tájékoztató", "tájékoztatás", "tájékoztatjuk"),
    "emlekeztet": ("emlékeztető", "emlékeztetjük"),
    "egyenleg": ("egyenleg", "egyenlege", "egyenleget", "egyenlegek"),
    "befizet": ("befizetés", "befizetési", "befizetett", "befizetendő"),
    "tartozas": ("tartozás", "tartozik", "tartozása", "tartozások"),
    "kiegyenlit": ("kiegyenlítés", "kiegyenlítése", "kiegyenlítve", "kiegyenlítendő"),
    "hatralek": ("hátralék", "hátraléka", "hátralékos", "hátralékok"),
    "aram": ("áram", "áramot", "árammal", "áramszámla"),
    "gaz": ("gáz", "gázszámla", "gázzal", "gázfogyasztás"),
    "viz": ("víz", "vízszámla", "vízzel", "vízfogyasztás", "vízművek"),
    "kozuzem": ("közüzemi", "közüzem", "közüzemek"),
    "szolgaltat": ("szolgáltató", "szolgáltatás", "szolgáltatást", "szolgáltatások"),
    "fogyaszt": ("fogyasztás", "fogyasztási", "fogyasztott", "fogyasztva"),
    "osszeg": ("összeg", "összege", "összeget", "összegek", "összesen"),
    "teljes": ("teljes", "teljesen", "teljessé"),
    "netto": ("nettó", "nettót", "nettóból"),
    "brutto": ("bruttó", "bruttót", "bruttóból"),
    "afa": ("áfa", "áfát", "áfával"),
    "vegosszeg": ("végösszeg", "végösszeget", "végösszege"),
    "azonosit": ("azonosító", "azonosítás", "azonosítója", "azonosítva"),
    "ugyfel": ("ügyfél", "ügyfelek", "ügyfélszám", "ügyfelünk"),
    "felhasznalo": ("felhasználó", "felhasználói", "felhasználás"),
    "fogyaszto": ("fogyasztó", "fogyasztói"),
    "szerzodes": ("szerződés", "szerződő", "szerződéses"),
    "cim": ("cím", "címe", "címen", "címzett"),
    "idoszak": ("időszak", "időszaki", "időszakban"),
    "elszamol": ("elszámolás", "elszámolt", "elszámolási"),
    "vevo": ("vevő", "vevőnek", "vevőt"),
    "kelt": ("kelt", "kelte", "keltezés"),
    "kiallitas": ("kiállítás", "kiállítva", "kiállító"),
    "datum": ("dátum", "dátuma", "dátummal"),
    "mero": ("mérő", "mérők", "mérőóra"),
    "mennyiseg": ("mennyiség", "mennyiséget", "mennyiségben"),
    "egyseg": ("egység", "egységár", "egységenként"),
    "elozo": ("előző", "előzőleg"),
    "athozott": ("áthozott", "áthozatal"),
    "ado": ("adó", "adóval", "adót", "adószám"),
    "nev": ("név", "neve", "nevét"),
    "sorszam": ("sorszám", "sorszáma", "sorszámot"),
    "kibocsato": ("kibocsátó", "kibocsátott"),
    "elado": ("eladó", "eladott", "eladói"),
    "tipus": ("típus", "típusú", "típusok"),
})
